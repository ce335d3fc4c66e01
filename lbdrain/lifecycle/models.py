"""Membership state and per-phase report models.

The :class:`PhaseReport` JSON shape::

    {
      "phase": "deregister",
      "instance_id": "i-0abc...",
      "started_at": "2026-10-18T09:00:00+00:00",
      "elapsed_seconds": 41.2,
      "targets": [
        {"name": "web-lb", "outcome": "converged", "final_state": "OutOfService", ...},
        {"name": "old-lb", "outcome": "skipped", "reason": "undescribable LB", ...}
      ]
    }
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MembershipState(str, Enum):
    """Instance state as seen by one load balancer.

    ``NotMember`` is local: the provider reported no relationship at all,
    which is distinct from the provider's own ``Unknown``.
    """

    IN_SERVICE = "InService"
    OUT_OF_SERVICE = "OutOfService"
    UNKNOWN = "Unknown"
    NOT_MEMBER = "NotMember"


#: Provider-native values that map one-to-one onto :class:`MembershipState`.
PROVIDER_STATES = frozenset(
    {
        MembershipState.IN_SERVICE.value,
        MembershipState.OUT_OF_SERVICE.value,
        MembershipState.UNKNOWN.value,
    }
)


@dataclass(frozen=True)
class WaitBudget:
    """How long to poll one load balancer: ``attempts`` × ``interval`` seconds."""

    attempts: int
    interval: int

    @property
    def total_seconds(self) -> int:
        return self.attempts * self.interval


class Phase(str, Enum):
    DEREGISTER = "deregister"
    REGISTER = "register"


class Outcome(str, Enum):
    """What happened to one target LB within a phase."""

    SKIPPED = "skipped"
    CONVERGED = "converged"


class TargetResult(BaseModel):
    """Per-LB line of a :class:`PhaseReport`."""

    name: str
    outcome: Outcome
    reason: str = ""
    initial_state: Optional[MembershipState] = None
    final_state: Optional[MembershipState] = None
    attempts: int = 0


class PhaseReport(BaseModel):
    """Outcome of one deregister or register phase."""

    phase: Phase
    instance_id: str
    started_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )
    elapsed_seconds: float = 0.0
    targets: List[TargetResult] = Field(default_factory=list)

    @property
    def processed(self) -> List[str]:
        """Names of LBs the phase acted on and saw converge."""
        return [t.name for t in self.targets if t.outcome == Outcome.CONVERGED]

    @property
    def skipped(self) -> List[TargetResult]:
        return [t for t in self.targets if t.outcome == Outcome.SKIPPED]

    def to_sorted_json(self, indent: int = 2) -> str:
        """Serialise with sorted keys for deterministic output."""
        import json

        return json.dumps(
            self.model_dump(mode="json"),
            indent=indent,
            sort_keys=True,
        )
