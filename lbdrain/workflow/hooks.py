"""Deploy-hook workflows: deregister, register, cycle, status.

Each ``run_*`` function is a complete process invocation: resolve the
instance, resolve the target load balancers, run the phase, and map the
outcome to an exit code.  Any :class:`LBDrainError` is fatal and is
reported as ``[FATAL] <message>`` on stderr.

A typical CodeDeploy wiring runs ``deregister`` in ``ApplicationStop`` and
``register`` in ``ValidateService``; the two invocations meet through the
per-deployment flag file.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Tuple

import requests

from lbdrain import ui
from lbdrain.aws.context import AWSContext
from lbdrain.aws.instance import get_local_instance_id, resolve_instance_id_from_ip
from lbdrain.config.loader import parse_targets
from lbdrain.config.models import DrainConfig, Explicit
from lbdrain.errors import CommandError, ConfigError, LBDrainError, ValidationError
from lbdrain.lifecycle.models import PhaseReport
from lbdrain.lifecycle.orchestrator import RegistrationOrchestrator
from lbdrain.lifecycle.validator import validate_membership
from lbdrain.state.flags import FlagStore, flag_store_for
from lbdrain.workflow.runner import run_deployment_command

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FATAL = 1


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _aws_context(config: DrainConfig) -> AWSContext:
    """Open a session and verify credentials; raises :class:`QueryError`."""
    ctx = AWSContext.build(config.region, config.profile)
    logger.debug("AWS caller %s (account %s)", ctx.caller_arn, ctx.account_id)
    return ctx


def resolve_instance(
    config: DrainConfig,
    *,
    instance_id: Optional[str] = None,
    instance_ip: Optional[str] = None,
    ec2_client: Any = None,
    imds_session: Optional[requests.Session] = None,
) -> str:
    """Return the instance ID to operate on.

    Precedence: explicit *instance_id* → *instance_ip* lookup → local
    instance metadata.
    """
    if instance_id:
        return instance_id
    if instance_ip:
        ec2 = ec2_client or _aws_context(config).client("ec2")
        return resolve_instance_id_from_ip(ec2, instance_ip)
    return get_local_instance_id(timeout=config.imds_timeout, session=imds_session)


def _connect(
    config: DrainConfig,
    *,
    instance_id: Optional[str],
    instance_ip: Optional[str],
    elb_client: Any,
    ec2_client: Any,
) -> Tuple[str, Any]:
    """Resolve the instance ID and the ELB client for one run.

    Credentials are checked once, before anything else, unless every client
    the run needs was passed in.
    """
    needs_ec2 = bool(instance_ip) and not instance_id and ec2_client is None
    ctx = _aws_context(config) if elb_client is None or needs_ec2 else None
    if needs_ec2:
        ec2_client = ctx.client("ec2")
    iid = resolve_instance(
        config, instance_id=instance_id, instance_ip=instance_ip, ec2_client=ec2_client,
    )
    return iid, elb_client or ctx.client("elb")


def _fail(exc: LBDrainError) -> int:
    logger.debug("Fatal error", exc_info=exc)
    ui.fatal(str(exc))
    return EXIT_FATAL


def _finish(report: Optional[PhaseReport], *, json_output: bool) -> None:
    if report is None:
        return
    if json_output:
        ui.console.print_json(report.to_sorted_json())
    else:
        ui.phase_summary(report)


def _deregister_pass(
    orchestrator: RegistrationOrchestrator,
    instance_id: str,
    store: FlagStore,
) -> Optional[PhaseReport]:
    targets = parse_targets(orchestrator.config.elb_list)
    names = orchestrator.resolve_deregister_targets(instance_id, targets, store)
    if not names:
        ui.ok("No load balancers to deregister from.")
        return None

    ui.step(f"Deregistering {instance_id} from: {', '.join(names)}")
    return orchestrator.deregister(instance_id, names)


def _register_pass(
    orchestrator: RegistrationOrchestrator,
    instance_id: str,
    store: FlagStore,
) -> Optional[PhaseReport]:
    targets = parse_targets(orchestrator.config.elb_list)
    names = orchestrator.resolve_register_targets(targets, store)
    if not names:
        ui.ok("No load balancers to register to.")
        if store.exists():
            store.remove()
        return None

    ui.step(f"Registering {instance_id} to: {', '.join(names)}")
    report = orchestrator.reregister(instance_id, names)
    store.remove()
    return report


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def run_deregister_workflow(
    config: DrainConfig,
    *,
    instance_id: Optional[str] = None,
    instance_ip: Optional[str] = None,
    elb_client: Any = None,
    ec2_client: Any = None,
    store: Optional[FlagStore] = None,
    json_output: bool = False,
    _sleep_fn: Optional[Callable[[float], Any]] = None,
) -> int:
    """Drain the instance out of its load balancers.

    Returns :data:`EXIT_SUCCESS` or :data:`EXIT_FATAL`.
    """
    start = time.time()
    ui.phase("DEREGISTER")
    try:
        iid, elb = _connect(
            config, instance_id=instance_id, instance_ip=instance_ip,
            elb_client=elb_client, ec2_client=ec2_client,
        )
        orchestrator = RegistrationOrchestrator(elb, config, _sleep_fn=_sleep_fn)
        report = _deregister_pass(orchestrator, iid, store or flag_store_for(config))
    except LBDrainError as exc:
        return _fail(exc)

    _finish(report, json_output=json_output)
    ui.info(f"Finished deregister in {ui.elapsed_str(time.time() - start)}")
    return EXIT_SUCCESS


def run_register_workflow(
    config: DrainConfig,
    *,
    instance_id: Optional[str] = None,
    instance_ip: Optional[str] = None,
    elb_client: Any = None,
    ec2_client: Any = None,
    store: Optional[FlagStore] = None,
    json_output: bool = False,
    _sleep_fn: Optional[Callable[[float], Any]] = None,
) -> int:
    """Restore the instance to the load balancers it was drained from.

    Removes the deployment flag file on success.
    """
    start = time.time()
    ui.phase("REGISTER")
    try:
        iid, elb = _connect(
            config, instance_id=instance_id, instance_ip=instance_ip,
            elb_client=elb_client, ec2_client=ec2_client,
        )
        orchestrator = RegistrationOrchestrator(elb, config, _sleep_fn=_sleep_fn)
        report = _register_pass(orchestrator, iid, store or flag_store_for(config))
    except LBDrainError as exc:
        return _fail(exc)

    _finish(report, json_output=json_output)
    ui.info(f"Finished register in {ui.elapsed_str(time.time() - start)}")
    return EXIT_SUCCESS


def run_cycle_workflow(
    config: DrainConfig,
    command: List[str],
    *,
    instance_id: Optional[str] = None,
    instance_ip: Optional[str] = None,
    elb_client: Any = None,
    ec2_client: Any = None,
    store: Optional[FlagStore] = None,
    json_output: bool = False,
    _sleep_fn: Optional[Callable[[float], Any]] = None,
    _run_fn: Optional[Callable[..., Any]] = None,
) -> int:
    """Deregister, run *command*, then re-register in one process.

    A failing *command* is fatal and leaves the instance drained.
    """
    run = _run_fn or run_deployment_command
    start = time.time()
    try:
        if not command:
            raise ConfigError("No deployment command given")
        iid, elb = _connect(
            config, instance_id=instance_id, instance_ip=instance_ip,
            elb_client=elb_client, ec2_client=ec2_client,
        )
        flags = store or flag_store_for(config)
        orchestrator = RegistrationOrchestrator(elb, config, _sleep_fn=_sleep_fn)

        ui.phase("DEREGISTER")
        _finish(_deregister_pass(orchestrator, iid, flags), json_output=json_output)

        ui.phase("DEPLOY")
        result = run(command, instance_id=iid)
        if not result.success:
            raise CommandError(
                f"Deployment command failed (rc={result.returncode}): {result.command}; "
                f"{iid} left out of service"
            )
        ui.ok(f"Deployment command succeeded: {result.command}")

        ui.phase("REGISTER")
        _finish(_register_pass(orchestrator, iid, flags), json_output=json_output)
    except LBDrainError as exc:
        return _fail(exc)

    ui.info(f"Finished cycle in {ui.elapsed_str(time.time() - start)}")
    return EXIT_SUCCESS


def run_status_workflow(
    config: DrainConfig,
    *,
    instance_id: Optional[str] = None,
    instance_ip: Optional[str] = None,
    elb_client: Any = None,
    ec2_client: Any = None,
) -> int:
    """Print the instance's membership state on each target LB.  Read-only."""
    ui.phase("STATUS")
    try:
        iid, elb = _connect(
            config, instance_id=instance_id, instance_ip=instance_ip,
            elb_client=elb_client, ec2_client=ec2_client,
        )
        targets = parse_targets(config.elb_list)
        if isinstance(targets, Explicit) and targets.names:
            names = list(targets.names)
        else:
            names = RegistrationOrchestrator(elb, config).discover(iid)
    except LBDrainError as exc:
        return _fail(exc)

    if not names:
        ui.info(f"{iid} is not registered with any load balancer")
        return EXIT_SUCCESS

    for name in names:
        try:
            state = validate_membership(elb, iid, name)
        except ValidationError as exc:
            ui.warn(f"{name}: {exc.reason}")
            continue
        ui.ok(f"{name}: {state.value}")
    return EXIT_SUCCESS
