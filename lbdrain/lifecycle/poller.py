"""Instance membership polling — single reads and the bounded wait loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from lbdrain.aws.elb import describe_instance_health
from lbdrain.errors import QueryError
from lbdrain.lifecycle.models import PROVIDER_STATES, MembershipState, WaitBudget

logger = logging.getLogger(__name__)


def normalize_state(raw: Optional[str]) -> MembershipState:
    """Map a provider status string onto :class:`MembershipState`."""
    if raw in PROVIDER_STATES:
        return MembershipState(raw)
    return MembershipState.NOT_MEMBER


def poll_state(elb_client: Any, instance_id: str, lb_name: str) -> MembershipState:
    """Query the provider once for *instance_id*'s state in *lb_name*.

    Raises :class:`QueryError` only for transport/auth failures; an
    unregistered instance or unrecognised status yields ``NOT_MEMBER``.
    """
    logger.debug("Checking status of instance '%s' in load balancer '%s'", instance_id, lb_name)
    raw = describe_instance_health(elb_client, lb_name, instance_id)
    state = normalize_state(raw)
    if state is MembershipState.NOT_MEMBER:
        logger.debug("Instance '%s' not part of ELB '%s' (raw=%r)", instance_id, lb_name, raw)
    return state


def is_converged(state: MembershipState, target: MembershipState) -> bool:
    """Only an exact match counts; ``NOT_MEMBER`` never satisfies a wait."""
    return state is target


# ---------------------------------------------------------------------------
# Wait loop
# ---------------------------------------------------------------------------


@dataclass
class WaitResult:
    """Outcome of :func:`wait_for_state`."""

    lb_name: str
    target: MembershipState
    success: bool
    final_state: Optional[MembershipState]
    attempts: int
    elapsed_seconds: float
    error: str = ""


def wait_for_state(
    elb_client: Any,
    instance_id: str,
    lb_name: str,
    target: MembershipState,
    budget: WaitBudget,
    *,
    _sleep_fn: Optional[Callable[[float], Any]] = None,
) -> WaitResult:
    """Poll until *instance_id* reaches *target* in *lb_name* or *budget* runs out.

    At most ``budget.attempts`` polls are made, ``budget.interval`` seconds
    apart.  A :class:`QueryError` on a poll counts as not-yet-converged; the
    read is retried, nothing else is.

    The *_sleep_fn* parameter is for test injection (avoids real sleeps).
    """
    sleep = _sleep_fn or time.sleep
    start = time.time()
    max_attempts = max(budget.attempts, 1)

    logger.info(
        "Checking %d times, every %d seconds, for instance %s to be in state %s on %s",
        max_attempts, budget.interval, instance_id, target.value, lb_name,
    )

    state: Optional[MembershipState] = None
    attempt = 0
    while True:
        attempt += 1
        try:
            state = poll_state(elb_client, instance_id, lb_name)
            logger.info("Instance is currently in state: %s", state.value)
        except QueryError as exc:
            state = None
            logger.warning("State poll on %s failed (%d/%d): %s", lb_name, attempt, max_attempts, exc)

        if state is not None and is_converged(state, target):
            return WaitResult(
                lb_name=lb_name,
                target=target,
                success=True,
                final_state=state,
                attempts=attempt,
                elapsed_seconds=time.time() - start,
            )

        if attempt >= max_attempts:
            return WaitResult(
                lb_name=lb_name,
                target=target,
                success=False,
                final_state=state,
                attempts=attempt,
                elapsed_seconds=time.time() - start,
                error=(
                    f"Instance failed to reach state {target.value} on {lb_name} "
                    f"within {budget.total_seconds} seconds"
                ),
            )

        sleep(budget.interval)
