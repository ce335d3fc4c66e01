"""CLI entry point for lbdrain, built on cli-core-yo.

Provides ``deregister``, ``register``, ``cycle`` and ``status`` commands for
taking an instance out of its classic load balancers around a deployment.

Usage::

    lbdrain --help
    lbdrain deregister --elb-list _all_
    lbdrain register --elb-list _all_
    lbdrain cycle --instance-ip 10.0.1.15 --elb-list "web-lb api-lb" -- ./deploy.sh
    lbdrain status --elb-list _any_
"""

from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional

import typer
from cli_core_yo import output
from cli_core_yo.app import create_app
from cli_core_yo.runtime import _reset, initialize
from cli_core_yo.spec import CliSpec, XdgSpec

from lbdrain import ui
from lbdrain.config.loader import load_config
from lbdrain.config.models import DrainConfig
from lbdrain.errors import ConfigError
from lbdrain.workflow.hooks import EXIT_FATAL

# ── App specification ────────────────────────────────────────────────────────

spec = CliSpec(
    prog_name="lbdrain",
    app_display_name="lbdrain",
    dist_name="lbdrain",
    root_help=(
        "Drain an instance out of its Elastic Load Balancers for a "
        "deployment and restore it afterwards."
    ),
    xdg=XdgSpec(app_dir_name="lbdrain"),
)

app = create_app(spec)

_STATE = {"json": False}


# ── Root callback (global options) ───────────────────────────────────────────


@app.callback()
def _root_callback(
    json_flag: bool = typer.Option(
        False, "--json", "-j", help="Print phase reports as JSON."
    ),
) -> None:
    """lbdrain deploy-hook control plane."""
    _reset()
    debug = os.environ.get("CLI_CORE_YO_DEBUG") == "1"
    xdg_paths = app._cli_core_yo_xdg_paths  # type: ignore[attr-defined]
    initialize(spec, xdg_paths, json_mode=json_flag, debug=debug)
    _STATE["json"] = json_flag


# ── Shared option helpers ────────────────────────────────────────────────────


def _instance_ip_option() -> Optional[str]:
    return typer.Option(
        None,
        "--instance-ip",
        help="IP of the instance to operate on. Defaults to this machine (instance metadata).",
    )


def _elb_list_option() -> Optional[str]:
    return typer.Option(
        None,
        "--elb-list",
        help=(
            'Load balancer names (space/comma separated), "_all_" to discover, '
            'or "_any_" to discover and tolerate none. Defaults to ELB_LIST env.'
        ),
    )


def _config_option() -> Optional[str]:
    return typer.Option(None, "--config", help="Path to an lbdrain config YAML.")


def _region_option() -> Optional[str]:
    return typer.Option(None, "--region", help="AWS region. Defaults to AWS_DEFAULT_REGION.")


def _profile_option() -> Optional[str]:
    return typer.Option(None, "--profile", help="AWS CLI profile. Defaults to AWS_PROFILE env var.")


def _deployment_id_option() -> Optional[str]:
    return typer.Option(None, "--deployment-id", help="Defaults to DEPLOYMENT_ID env var.")


def _deployment_group_option() -> Optional[str]:
    return typer.Option(None, "--deployment-group-id", help="Defaults to DEPLOYMENT_GROUP_ID env var.")


def _debug_option() -> bool:
    return typer.Option(False, "--debug", help="Enable debug logging.")


def _load(
    config: Optional[str],
    *,
    debug: bool,
    **overrides: Optional[str],
) -> DrainConfig:
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    try:
        cfg = load_config(config, debug=debug or None, **overrides)
    except ConfigError as exc:
        ui.fatal(str(exc))
        raise typer.Exit(EXIT_FATAL) from exc
    if cfg.debug and not debug:
        logging.basicConfig(level=logging.DEBUG)
    return cfg


# ── deregister command ───────────────────────────────────────────────────────


@app.command()
def deregister(
    instance_ip: Optional[str] = _instance_ip_option(),
    elb_list: Optional[str] = _elb_list_option(),
    config: Optional[str] = _config_option(),
    region: Optional[str] = _region_option(),
    profile: Optional[str] = _profile_option(),
    deployment_id: Optional[str] = _deployment_id_option(),
    deployment_group_id: Optional[str] = _deployment_group_option(),
    debug: bool = _debug_option(),
) -> None:
    """Deregister the instance and wait until it is out of service.

    The resolved load balancer list is saved for the matching ``register``.
    Exits 0 on success (including "nothing to do"), 1 on any fatal error.
    """
    from lbdrain.workflow.hooks import run_deregister_workflow

    cfg = _load(
        config, debug=debug, elb_list=elb_list, region=region, profile=profile,
        deployment_id=deployment_id, deployment_group_id=deployment_group_id,
    )
    output.action("Draining instance from its load balancers ...")
    rc = run_deregister_workflow(cfg, instance_ip=instance_ip, json_output=_STATE["json"])
    raise typer.Exit(rc)


# ── register command ─────────────────────────────────────────────────────────


@app.command()
def register(
    instance_ip: Optional[str] = _instance_ip_option(),
    elb_list: Optional[str] = _elb_list_option(),
    config: Optional[str] = _config_option(),
    region: Optional[str] = _region_option(),
    profile: Optional[str] = _profile_option(),
    deployment_id: Optional[str] = _deployment_id_option(),
    deployment_group_id: Optional[str] = _deployment_group_option(),
    debug: bool = _debug_option(),
) -> None:
    """Register the instance again and wait until it is in service.

    With ``_all_`` / ``_any_`` the list saved by ``deregister`` is used.
    """
    from lbdrain.workflow.hooks import run_register_workflow

    cfg = _load(
        config, debug=debug, elb_list=elb_list, region=region, profile=profile,
        deployment_id=deployment_id, deployment_group_id=deployment_group_id,
    )
    output.action("Restoring instance to its load balancers ...")
    rc = run_register_workflow(cfg, instance_ip=instance_ip, json_output=_STATE["json"])
    raise typer.Exit(rc)


# ── cycle command ────────────────────────────────────────────────────────────


@app.command()
def cycle(
    command: List[str] = typer.Argument(
        ..., help="Deployment command to run while drained (put it after --)."
    ),
    instance_ip: Optional[str] = _instance_ip_option(),
    elb_list: Optional[str] = _elb_list_option(),
    config: Optional[str] = _config_option(),
    region: Optional[str] = _region_option(),
    profile: Optional[str] = _profile_option(),
    deployment_id: Optional[str] = _deployment_id_option(),
    deployment_group_id: Optional[str] = _deployment_group_option(),
    debug: bool = _debug_option(),
) -> None:
    """Deregister, run COMMAND, then register again.

    If COMMAND fails the instance stays out of service and the exit code is 1.
    """
    from lbdrain.workflow.hooks import run_cycle_workflow

    cfg = _load(
        config, debug=debug, elb_list=elb_list, region=region, profile=profile,
        deployment_id=deployment_id, deployment_group_id=deployment_group_id,
    )
    rc = run_cycle_workflow(
        cfg, list(command), instance_ip=instance_ip, json_output=_STATE["json"],
    )
    raise typer.Exit(rc)


# ── status command ───────────────────────────────────────────────────────────


@app.command()
def status(
    instance_ip: Optional[str] = _instance_ip_option(),
    elb_list: Optional[str] = _elb_list_option(),
    config: Optional[str] = _config_option(),
    region: Optional[str] = _region_option(),
    profile: Optional[str] = _profile_option(),
    debug: bool = _debug_option(),
) -> None:
    """Show the instance's state on each load balancer (read-only)."""
    from lbdrain.workflow.hooks import run_status_workflow

    cfg = _load(config, debug=debug, elb_list=elb_list, region=region, profile=profile)
    rc = run_status_workflow(cfg, instance_ip=instance_ip)
    raise typer.Exit(rc)


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
