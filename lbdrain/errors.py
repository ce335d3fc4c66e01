"""Error taxonomy for load-balancer drain/restore workflows.

Only :class:`ValidationError` is soft (the orchestrator skips that load
balancer and carries on).  Everything else aborts the run with exit code 1.
"""

from __future__ import annotations


class LBDrainError(Exception):
    """Base class for all lbdrain failures."""


class QueryError(LBDrainError):
    """A read against the provider failed (transport, auth, throttling)."""


class ValidationError(LBDrainError):
    """A load balancer cannot be used for this run."""

    def __init__(self, lb_name: str, reason: str) -> None:
        self.lb_name = lb_name
        self.reason = reason
        super().__init__(f"{lb_name}: {reason}")


class ConfigError(LBDrainError):
    """Bad target list, state name, or configuration file."""


class ActionError(LBDrainError):
    """A register/deregister call was rejected by the provider."""


class WaitTimeoutError(LBDrainError):
    """Instance state did not converge within the computed budget."""


class InstanceResolutionError(LBDrainError):
    """The instance ID could not be resolved from an IP or local metadata."""


class FlagStoreError(LBDrainError):
    """The deployment flag file could not be read or written."""


class FlagNotFoundError(FlagStoreError, KeyError):
    """The flag file, or a key within it, does not exist."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class CommandError(LBDrainError):
    """The deployment command run between the phases failed."""
