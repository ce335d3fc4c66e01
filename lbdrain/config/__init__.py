"""Configuration loading and target-list parsing."""

from lbdrain.config.loader import format_targets, load_config, parse_targets
from lbdrain.config.models import (
    DEFAULT_PROPAGATION_DELAY,
    DEFAULT_WAITER_INTERVAL,
    DISCOVER_ALL_SENTINEL,
    DISCOVER_ANY_SENTINEL,
    DiscoverAll,
    DiscoverAllLenient,
    DrainConfig,
    Explicit,
    TargetSpec,
)

__all__ = [
    "DEFAULT_PROPAGATION_DELAY",
    "DEFAULT_WAITER_INTERVAL",
    "DISCOVER_ALL_SENTINEL",
    "DISCOVER_ANY_SENTINEL",
    "DiscoverAll",
    "DiscoverAllLenient",
    "DrainConfig",
    "Explicit",
    "TargetSpec",
    "format_targets",
    "load_config",
    "parse_targets",
]
