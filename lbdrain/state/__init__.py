"""Cross-process state for paired deregister/register passes."""

from lbdrain.state.flags import (
    DEREG_FLAG,
    ELB_LIST_FLAG,
    FLAG_FILE_PREFIX,
    FlagStore,
    flag_file_path,
    flag_store_for,
)

__all__ = [
    "DEREG_FLAG",
    "ELB_LIST_FLAG",
    "FLAG_FILE_PREFIX",
    "FlagStore",
    "flag_file_path",
    "flag_store_for",
]
