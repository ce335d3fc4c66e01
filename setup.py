from setuptools import setup, find_packages

setup(
    name="lbdrain",
    version="0.3.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "boto3",
        "botocore",
        "cli-core-yo<2",
        "pydantic>=2",
        "PyYAML",
        "requests",
        "rich",
        "typer",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "lbdrain=lbdrain.cli:main",
        ],
    },
)
