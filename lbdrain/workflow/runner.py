"""Deployment command wrapper used by ``lbdrain cycle``.

Runs the user's deployment command as a subprocess between the deregister
and register phases.  Output is not captured so it streams straight into
the deploy agent's log.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

#: Return code reported when the command executable does not exist.
COMMAND_NOT_FOUND_RC = 127


@dataclass
class CommandResult:
    """Outcome of :func:`run_deployment_command`."""

    command: str
    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0


def run_deployment_command(
    args: List[str],
    *,
    instance_id: str = "",
) -> CommandResult:
    """Run *args* and wait for it to finish.

    ``LBDRAIN_INSTANCE_ID`` is exported to the child so deployment scripts
    know which instance was drained.
    """
    cmd = shlex.join(args)
    env = {**os.environ}
    if instance_id:
        env["LBDRAIN_INSTANCE_ID"] = instance_id

    logger.info("Running: %s", cmd)
    try:
        proc = subprocess.run(args, env=env)
    except FileNotFoundError:
        logger.error("Command not found: %s", args[0] if args else "")
        return CommandResult(command=cmd, returncode=COMMAND_NOT_FOUND_RC)

    logger.info("Command exited with rc=%d", proc.returncode)
    return CommandResult(command=cmd, returncode=proc.returncode)
