"""lbdrain - take an instance out of its load balancers for a deployment.

Drains a single EC2 instance from its classic Elastic Load Balancers,
lets the deployment run, then restores it, waiting for the provider to
report the expected state at each step.
"""

try:
    from importlib.metadata import version

    __version__ = version("lbdrain")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
