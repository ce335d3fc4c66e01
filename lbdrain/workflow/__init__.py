"""Deploy-hook workflows and the deployment command wrapper."""

from lbdrain.workflow.hooks import (
    EXIT_FATAL,
    EXIT_SUCCESS,
    resolve_instance,
    run_cycle_workflow,
    run_deregister_workflow,
    run_register_workflow,
    run_status_workflow,
)
from lbdrain.workflow.runner import CommandResult, run_deployment_command

__all__ = [
    "CommandResult",
    "EXIT_FATAL",
    "EXIT_SUCCESS",
    "resolve_instance",
    "run_cycle_workflow",
    "run_deployment_command",
    "run_deregister_workflow",
    "run_register_workflow",
    "run_status_workflow",
]
