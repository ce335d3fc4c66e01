"""Per-deployment flag file shared by the deregister and register passes.

The two passes normally run as separate processes (e.g. the
``BeforeInstall`` and ``ApplicationStart`` lifecycle hooks), so the LB list
resolved during deregistration is written here for re-registration to read.

File naming::

    <flag_dir>/lbdrain_flags-<deployment_group_id>-<deployment_id>

Format: UTF-8, one ``key=value`` per line, no escaping, append-only
writes, first matching key wins on read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Tuple

from lbdrain.config.models import DrainConfig
from lbdrain.errors import FlagNotFoundError, FlagStoreError

logger = logging.getLogger(__name__)

FLAG_FILE_PREFIX = "lbdrain_flags"

#: Set to ``true`` once a deregistration pass has started.
DEREG_FLAG = "dereg"

#: Space-separated LB names resolved by the deregistration pass.
ELB_LIST_FLAG = "ELB_LIST"


def flag_file_path(flag_dir: str | Path, deployment_group_id: str, deployment_id: str) -> Path:
    """Deterministic flag file path for one deployment."""
    return Path(flag_dir) / f"{FLAG_FILE_PREFIX}-{deployment_group_id}-{deployment_id}"


def flag_store_for(config: DrainConfig) -> "FlagStore":
    """Build the :class:`FlagStore` for the deployment named in *config*."""
    if not (config.deployment_id and config.deployment_group_id):
        logger.warning(
            "DEPLOYMENT_ID / DEPLOYMENT_GROUP_ID not fully set; "
            "overlapping deployments on this instance will share a flag file",
        )
    return FlagStore(
        flag_file_path(config.flag_dir, config.deployment_group_id, config.deployment_id)
    )


class FlagStore:
    """Line-oriented ``key=value`` file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FlagStore({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.is_file()

    def set(self, key: str, value: str) -> None:
        """Append ``key=value``.  Raises :class:`FlagStoreError` on failure."""
        if "=" in key or "\n" in key or "\n" in value:
            raise FlagStoreError(f"Unable to write flag \"{key}={value}\": invalid characters")
        try:
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(f"{key}={value}\n")
        except OSError as exc:
            raise FlagStoreError(
                f"Unable to write flag \"{key}={value}\" to {self.path}: {exc}"
            ) from exc
        logger.debug("Flag %s=%s written to %s", key, value, self.path)

    def _lines(self) -> Iterator[Tuple[str, str]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise FlagNotFoundError(f"{self.path} doesn't exist") from exc
        except OSError as exc:
            raise FlagStoreError(f"{self.path} is unreadable: {exc}") from exc

        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                yield key, value

    def get(self, key: str) -> str:
        """Return the first value stored under *key*.

        Raises :class:`FlagNotFoundError` if the file or the key is missing.
        """
        for k, v in self._lines():
            if k == key:
                return v
        raise FlagNotFoundError(f"Flag '{key}' not found in {self.path}")

    def remove(self) -> None:
        """Delete the flag file; a missing file only logs a warning."""
        try:
            self.path.unlink()
        except OSError as exc:
            logger.warning("Failed to remove flagfile %s: %s", self.path, exc)
            return
        logger.info("Successfully removed flagfile %s", self.path)
