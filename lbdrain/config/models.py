"""Configuration models for lbdrain.

Defines:
- :class:`DrainConfig` — the immutable run configuration handed to every
  component at construction time.
- The target-list variant (:class:`Explicit`, :class:`DiscoverAll`,
  :class:`DiscoverAllLenient`) parsed from the raw ``ELB_LIST`` value.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

#: ``ELB_LIST`` sentinel: find every LB the instance is registered to.
DISCOVER_ALL_SENTINEL = "_all_"

#: ``ELB_LIST`` sentinel: like ``_all_`` but finding none is not an error.
DISCOVER_ANY_SENTINEL = "_any_"

#: Seconds a register/deregister call itself may take to propagate.
DEFAULT_PROPAGATION_DELAY = 30

#: Seconds between state polls.
DEFAULT_WAITER_INTERVAL = 1


class DrainConfig(BaseModel):
    """Run configuration.  Frozen; build a new one instead of mutating."""

    model_config = ConfigDict(frozen=True)

    region: str = "us-east-1"
    profile: Optional[str] = None
    debug: bool = False

    waiter_interval: int = Field(default=DEFAULT_WAITER_INTERVAL, ge=1)
    propagation_delay: int = Field(default=DEFAULT_PROPAGATION_DELAY, ge=0)

    flag_dir: str = Field(default_factory=tempfile.gettempdir)
    deployment_id: str = ""
    deployment_group_id: str = ""

    elb_list: str = ""
    imds_timeout: float = 2.0

    @field_validator("profile", mode="before")
    @classmethod
    def _empty_profile_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


# ---------------------------------------------------------------------------
# Target list variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Explicit:
    """A fixed, user-supplied list of load balancer names."""

    names: Tuple[str, ...]


@dataclass(frozen=True)
class DiscoverAll:
    """Every LB the instance is registered to; none found is fatal."""


@dataclass(frozen=True)
class DiscoverAllLenient:
    """Every LB the instance is registered to; none found is a no-op."""


TargetSpec = Union[Explicit, DiscoverAll, DiscoverAllLenient]
