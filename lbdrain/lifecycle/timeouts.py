"""Per-load-balancer wait budgets.

``InService`` waits on the health check; ``OutOfService`` waits on
connection draining (zero when draining is off).  Both add the
propagation delay of the register/deregister call itself::

    attempts = (timeout + propagation_delay) // waiter_interval
"""

from __future__ import annotations

import logging

from lbdrain.aws.elb import LoadBalancer
from lbdrain.config.models import DrainConfig
from lbdrain.errors import ConfigError
from lbdrain.lifecycle.models import MembershipState, WaitBudget

logger = logging.getLogger(__name__)


def compute_wait_budget(
    lb: LoadBalancer,
    target: MembershipState,
    config: DrainConfig,
) -> WaitBudget:
    """Return the poll budget for *lb* to reach *target*.

    Raises :class:`ConfigError` for targets other than ``InService`` and
    ``OutOfService``.
    """
    if target is MembershipState.IN_SERVICE:
        timeout = lb.health_check_timeout
    elif target is MembershipState.OUT_OF_SERVICE:
        timeout = lb.draining_timeout if lb.draining_enabled else 0
    else:
        raise ConfigError(f"Unknown state name, '{getattr(target, 'value', target)}'")

    timeout += config.propagation_delay
    attempts = timeout // config.waiter_interval
    logger.debug(
        "Wait budget for %s -> %s: %d attempts x %ds",
        lb.name, target.value, attempts, config.waiter_interval,
    )
    return WaitBudget(attempts=attempts, interval=config.waiter_interval)
