from .conditions import (
    DEGRADED,
    PROGRESSING,
    AVAILABLE,
    GLOBAL_DEGRADED_PREFIX,
    find_condition,
    set_condition,
    merge_conditions,
    handle_degraded,
    is_degraded_ignore_global,
    set_progressing_true,
    set_progressing_false,
    set_available_true,
    set_progressing_true_and_available_false,
    degraded_union,
)
from .updater import StatusUpdater

__all__ = [
    "DEGRADED",
    "PROGRESSING",
    "AVAILABLE",
    "GLOBAL_DEGRADED_PREFIX",
    "find_condition",
    "set_condition",
    "merge_conditions",
    "handle_degraded",
    "is_degraded_ignore_global",
    "set_progressing_true",
    "set_progressing_false",
    "set_available_true",
    "set_progressing_true_and_available_false",
    "degraded_union",
    "StatusUpdater",
]
