"""Polling, wait budgets, validation and phase orchestration."""

from lbdrain.lifecycle.models import (
    MembershipState,
    Outcome,
    Phase,
    PhaseReport,
    TargetResult,
    WaitBudget,
)
from lbdrain.lifecycle.orchestrator import RegistrationOrchestrator
from lbdrain.lifecycle.poller import (
    WaitResult,
    is_converged,
    normalize_state,
    poll_state,
    wait_for_state,
)
from lbdrain.lifecycle.timeouts import compute_wait_budget
from lbdrain.lifecycle.validator import validate_membership

__all__ = [
    "MembershipState",
    "Outcome",
    "Phase",
    "PhaseReport",
    "RegistrationOrchestrator",
    "TargetResult",
    "WaitBudget",
    "WaitResult",
    "compute_wait_budget",
    "is_converged",
    "normalize_state",
    "poll_state",
    "validate_membership",
    "wait_for_state",
]
