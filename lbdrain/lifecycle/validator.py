"""Pre-action check that a load balancer is usable for this instance."""

from __future__ import annotations

import logging
from typing import Any

from lbdrain.aws.elb import describe_load_balancer
from lbdrain.errors import QueryError, ValidationError
from lbdrain.lifecycle.models import MembershipState
from lbdrain.lifecycle.poller import poll_state

logger = logging.getLogger(__name__)


def validate_membership(
    elb_client: Any, instance_id: str, lb_name: str,
) -> MembershipState:
    """Check that *lb_name* is describable and *instance_id* is pollable on it.

    Any membership state is acceptable, ``NOT_MEMBER`` included; only an
    LB that cannot be queried fails.  Returns the observed state.

    Raises :class:`ValidationError`.
    """
    try:
        describe_load_balancer(elb_client, lb_name)
    except QueryError as exc:
        logger.debug("Describe failed for %s: %s", lb_name, exc)
        raise ValidationError(lb_name, "undescribable LB") from exc

    logger.info("Checking health of '%s' as known by ELB '%s'", instance_id, lb_name)
    try:
        return poll_state(elb_client, instance_id, lb_name)
    except QueryError as exc:
        raise ValidationError(lb_name, f"instance health query failed: {exc}") from exc
