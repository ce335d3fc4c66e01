"""Deregister / re-register orchestration across a list of load balancers.

Each phase runs in two sequential passes over the target list:

1. **Act** — per LB, in list order: validate, then issue the command.
   A validation failure skips that LB; a failed command aborts the run.
2. **Wait** — per successfully-acted LB, in list order: compute the LB's
   wait budget and poll until the target state is reached.  An exhausted
   budget aborts the run.

Total wait time is therefore the *sum* of each LB's settle time.

Target resolution differs between the two passes. Deregistration
discovers live membership and persists it to the :class:`FlagStore`;
re-registration only ever reads the persisted list back, since by then the
instance is no longer registered anywhere to be discovered.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Tuple

from lbdrain.aws.elb import (
    deregister_instance,
    find_load_balancers_for_instance,
    load_balancer_settings,
    register_instance,
)
from lbdrain.config.loader import format_targets, parse_targets
from lbdrain.config.models import (
    DiscoverAll,
    DiscoverAllLenient,
    DrainConfig,
    Explicit,
    TargetSpec,
)
from lbdrain.errors import ConfigError, FlagNotFoundError, ValidationError, WaitTimeoutError
from lbdrain.lifecycle.models import (
    MembershipState,
    Outcome,
    Phase,
    PhaseReport,
    TargetResult,
)
from lbdrain.lifecycle.poller import wait_for_state
from lbdrain.lifecycle.timeouts import compute_wait_budget
from lbdrain.lifecycle.validator import validate_membership
from lbdrain.state.flags import DEREG_FLAG, ELB_LIST_FLAG, FlagStore

logger = logging.getLogger(__name__)

LBAction = Callable[[Any, str, str], None]


class RegistrationOrchestrator:
    """Drives one instance out of, and back into, a set of load balancers."""

    def __init__(
        self,
        elb_client: Any,
        config: DrainConfig,
        *,
        _sleep_fn: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.elb_client = elb_client
        self.config = config
        self._sleep_fn = _sleep_fn

    # -- target resolution ------------------------------------------------

    def discover(self, instance_id: str) -> List[str]:
        """Names of all LBs *instance_id* is currently registered with."""
        names = find_load_balancers_for_instance(self.elb_client, instance_id)
        if names:
            logger.info("Got load balancer list of: %s", format_targets(names))
        return names

    def resolve_deregister_targets(
        self, instance_id: str, targets: TargetSpec, store: FlagStore,
    ) -> List[str]:
        """Resolve *targets* for a deregistration pass and persist the result.

        Returns an empty list only for :class:`DiscoverAllLenient` finding
        nothing, which the caller treats as a successful no-op.
        """
        store.set(DEREG_FLAG, "true")

        if isinstance(targets, Explicit):
            names = list(targets.names)
            if not names:
                raise ConfigError(
                    "ELB_LIST is empty. Must have at least one load balancer to "
                    'deregister from, or "_all_", "_any_" values.'
                )
        elif isinstance(targets, DiscoverAll):
            logger.info("Automatically finding all the ELBs that %s is registered to", instance_id)
            names = self.discover(instance_id)
            if not names:
                raise ConfigError(
                    "Couldn't find any. Must have at least one load balancer to deregister from."
                )
        elif isinstance(targets, DiscoverAllLenient):
            logger.info("Automatically finding all the ELBs that %s is registered to", instance_id)
            names = self.discover(instance_id)
            if not names:
                logger.info(
                    "Couldn't find any, but ELB_LIST=_any_ so finishing successfully "
                    "without deregistering."
                )
        else:
            raise ConfigError(f"Unsupported target specification: {targets!r}")

        store.set(ELB_LIST_FLAG, format_targets(names))
        return names

    def resolve_register_targets(self, targets: TargetSpec, store: FlagStore) -> List[str]:
        """Resolve *targets* for a re-registration pass.

        Sentinels read the list persisted by the deregistration pass and
        never re-discover.  An empty return means "nothing to do".
        """
        if isinstance(targets, Explicit):
            if not targets.names:
                raise ConfigError(
                    "ELB_LIST is empty. Must have at least one load balancer to "
                    'register to, or "_all_", "_any_" values.'
                )
            return list(targets.names)

        if not isinstance(targets, (DiscoverAll, DiscoverAllLenient)):
            raise ConfigError(f"Unsupported target specification: {targets!r}")

        lenient = isinstance(targets, DiscoverAllLenient)
        try:
            deregistered = store.get(DEREG_FLAG) == "true"
        except FlagNotFoundError:
            deregistered = False
        if not deregistered:
            logger.info(
                "Assuming this is the first deployment and ELB_LIST=%s so finishing "
                "successfully without registering.",
                "_any_" if lenient else "_all_",
            )
            return []

        logger.info("Finding all the ELBs that this instance was previously registered to")
        try:
            raw = store.get(ELB_LIST_FLAG)
        except FlagNotFoundError as exc:
            if lenient:
                logger.info("No ELB list recorded, but ELB_LIST=_any_ so finishing successfully.")
                return []
            raise ConfigError(f"{store.path} doesn't record an ELB list") from exc

        parsed = parse_targets(raw)
        names = list(parsed.names) if isinstance(parsed, Explicit) else []
        if not names:
            if lenient:
                logger.info(
                    "Couldn't find any, but ELB_LIST=_any_ so finishing successfully "
                    "without registering."
                )
                return []
            raise ConfigError(
                "Couldn't find any. Must have at least one load balancer to register to."
            )
        return names

    # -- phases -----------------------------------------------------------

    def deregister(self, instance_id: str, lb_names: List[str]) -> PhaseReport:
        """Take *instance_id* out of every usable LB in *lb_names* and wait."""
        report = self._run_phase(
            Phase.DEREGISTER,
            instance_id,
            lb_names,
            action=deregister_instance,
            target=MembershipState.OUT_OF_SERVICE,
        )
        logger.info("Instance un-registered from all LB's in list.")
        return report

    def reregister(self, instance_id: str, lb_names: List[str]) -> PhaseReport:
        """Put *instance_id* back into every usable LB in *lb_names* and wait."""
        report = self._run_phase(
            Phase.REGISTER,
            instance_id,
            lb_names,
            action=register_instance,
            target=MembershipState.IN_SERVICE,
        )
        logger.info("Instance registered on all LB's in list.")
        return report

    def _run_phase(
        self,
        phase: Phase,
        instance_id: str,
        lb_names: List[str],
        *,
        action: LBAction,
        target: MembershipState,
    ) -> PhaseReport:
        start = time.time()
        report = PhaseReport(phase=phase, instance_id=instance_id)
        verb = "Deregistering" if phase is Phase.DEREGISTER else "Registering"

        acted: List[Tuple[str, MembershipState]] = []
        for name in dict.fromkeys(lb_names):
            logger.info("Checking validity of load balancer named '%s'", name)
            try:
                initial = validate_membership(self.elb_client, instance_id, name)
            except ValidationError as exc:
                logger.warning("Error validating %s; cannot continue with this LB: %s", name, exc.reason)
                report.targets.append(
                    TargetResult(name=name, outcome=Outcome.SKIPPED, reason=exc.reason)
                )
                continue

            logger.info("%s %s with %s", verb, instance_id, name)
            action(self.elb_client, name, instance_id)
            acted.append((name, initial))

        logger.info("Waiting for instance to reach %s on its load balancers", target.value)
        for name, initial in acted:
            lb = load_balancer_settings(self.elb_client, name)
            budget = compute_wait_budget(lb, target, self.config)
            result = wait_for_state(
                self.elb_client,
                instance_id,
                name,
                target,
                budget,
                _sleep_fn=self._sleep_fn,
            )
            if not result.success:
                raise WaitTimeoutError(
                    f"Failed waiting for {instance_id} to reach {target.value} "
                    f"on {name}: {result.error}"
                )
            report.targets.append(
                TargetResult(
                    name=name,
                    outcome=Outcome.CONVERGED,
                    initial_state=initial,
                    final_state=result.final_state,
                    attempts=result.attempts,
                )
            )

        report.elapsed_seconds = time.time() - start
        return report
