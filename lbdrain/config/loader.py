"""Configuration loading and ``ELB_LIST`` parsing.

Precedence, highest first:

1. Explicit overrides (CLI options)
2. Environment (``ELB_LIST``, ``DEPLOYMENT_ID``, ``DEPLOYMENT_GROUP_ID``,
   ``AWS_PROFILE``, ``LBDRAIN_DEBUG``, region via
   :func:`lbdrain.aws.context.resolve_region`)
3. Optional YAML file, ``lbdrain:`` section
4. :class:`DrainConfig` defaults

Example file::

    lbdrain:
      elb_list: "web-lb api-lb"
      waiter_interval: 5
      flag_dir: /var/tmp
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from lbdrain.aws.context import resolve_region
from lbdrain.config.models import (
    DISCOVER_ALL_SENTINEL,
    DISCOVER_ANY_SENTINEL,
    DiscoverAll,
    DiscoverAllLenient,
    DrainConfig,
    Explicit,
    TargetSpec,
)
from lbdrain.errors import ConfigError

logger = logging.getLogger(__name__)

_SECTION = "lbdrain"

# env var -> DrainConfig field
_ENV_FIELDS: Dict[str, str] = {
    "ELB_LIST": "elb_list",
    "DEPLOYMENT_ID": "deployment_id",
    "DEPLOYMENT_GROUP_ID": "deployment_group_id",
    "AWS_PROFILE": "profile",
    "LBDRAIN_DEBUG": "debug",
    "LBDRAIN_FLAG_DIR": "flag_dir",
}

_TRUTHY = {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Target parsing
# ---------------------------------------------------------------------------


def parse_targets(raw: str) -> TargetSpec:
    """Turn a raw ``ELB_LIST`` value into a :class:`TargetSpec`.

    ``_all_`` and ``_any_`` are the discovery sentinels; anything else is a
    whitespace- or comma-separated list of names.  An empty value yields an
    empty :class:`Explicit`, which the orchestrator rejects.
    """
    value = (raw or "").strip()
    if value == DISCOVER_ALL_SENTINEL:
        return DiscoverAll()
    if value == DISCOVER_ANY_SENTINEL:
        return DiscoverAllLenient()
    names = tuple(n for n in re.split(r"[\s,]+", value) if n)
    return Explicit(names=names)


def format_targets(names: Any) -> str:
    """Inverse of :func:`parse_targets` for an explicit list."""
    return " ".join(names)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_yaml_section(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    section = raw.get(_SECTION, {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{_SECTION}' in {path} must be a mapping")
    return section


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        if field_name == "debug":
            values[field_name] = raw.strip().lower() in _TRUTHY
        else:
            values[field_name] = raw
    return values


def load_config(
    path: Optional[str | Path] = None,
    **overrides: Any,
) -> DrainConfig:
    """Build a :class:`DrainConfig` from file, environment and *overrides*.

    Overrides whose value is ``None`` are ignored so CLI options that were not
    given fall through to the environment and file.

    Raises :class:`ConfigError` on unreadable files or invalid values.
    """
    file_values = _read_yaml_section(Path(path)) if path is not None else {}
    given = {k: v for k, v in overrides.items() if v is not None}

    merged: Dict[str, Any] = {**file_values, **_read_env(), **given}
    env_region = os.environ.get("AWS_DEFAULT_REGION") or os.environ.get("AWS_REGION")
    merged["region"] = resolve_region(
        given.get("region") or env_region or file_values.get("region")
    )

    try:
        cfg = DrainConfig(**merged)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    logger.debug("Loaded configuration: %s", cfg)
    return cfg
