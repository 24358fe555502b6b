"""Operator status conditions.

Conditions are plain dicts as stored in the operator's status:
``{"type", "status", "reason", "message", "lastTransitionTime"}`` with
``status`` being ``"True"`` or ``"False"``. All helpers are pure: they take a
list of conditions and return a new list, leaving the input untouched.

``lastTransitionTime`` only moves when a condition's status flips. Updating
reason or message alone keeps the previous timestamp.
"""
from typing import Dict, List, Optional
from authop.utils.helpers import now

DEGRADED = "Degraded"
PROGRESSING = "Progressing"
AVAILABLE = "Available"

#: Prefix of the catch-all degraded condition set when a sync fails
GLOBAL_DEGRADED_PREFIX = "OperatorSync"

#: Reason used for degraded conditions raised without a specific reason
DEFAULT_DEGRADED_REASON = "Error"

TRUE = "True"
FALSE = "False"

Condition = Dict[str, str]


def _status(value: bool) -> str:
    return TRUE if value else FALSE


def find_condition(conditions: List[Condition], type_: str) -> Optional[Condition]:
    return next((c for c in conditions or [] if c.get("type") == type_), None)


def set_condition(
    conditions: List[Condition], newc: Condition, timestamp: str = None
) -> List[Condition]:
    """Insert or update a condition by type.

    Only bump lastTransitionTime when status flips.
    """
    conds = [dict(c) for c in conditions or []]
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or timestamp or now()
            if c.get("status") != newc["status"]:
                ltt = newc.get("lastTransitionTime") or timestamp or now()
            conds[i] = {
                "type": newc["type"],
                "status": newc["status"],
                "reason": newc.get("reason", ""),
                "message": newc.get("message", ""),
                "lastTransitionTime": ltt,
            }
            break
    else:
        conds.append(
            {
                "type": newc["type"],
                "status": newc["status"],
                "reason": newc.get("reason", ""),
                "message": newc.get("message", ""),
                "lastTransitionTime": newc.get("lastTransitionTime")
                or timestamp
                or now(),
            }
        )
    return conds


def merge_conditions(
    original: List[Condition], updated: List[Condition], timestamp: str = None
) -> List[Condition]:
    """Fold `updated` onto `original`.

    Conditions present only in `original` are kept. Each condition in
    `updated` replaces its counterpart while keeping the counterpart's
    transition time unless the status changed.
    """
    merged = [dict(c) for c in original or []]
    for condition in updated or []:
        merged = set_condition(merged, condition, timestamp)
    return merged


def handle_degraded(
    conditions: List[Condition],
    prefix: str,
    err: Optional[BaseException],
    reason: str = "",
    timestamp: str = None,
) -> List[Condition]:
    """Set `<prefix>Degraded` from an error.

    With an error the condition is True with the given reason (or a generic
    fallback) and the error text as message. Without one it is False with
    reason and message cleared.
    """
    type_ = prefix + DEGRADED
    if err is not None:
        return set_condition(
            conditions,
            {
                "type": type_,
                "status": TRUE,
                "reason": reason or DEFAULT_DEGRADED_REASON,
                "message": str(err),
            },
            timestamp,
        )
    return set_condition(
        conditions, {"type": type_, "status": FALSE, "reason": "", "message": ""}, timestamp
    )


def _is_degraded_component(condition: Condition) -> bool:
    type_ = condition.get("type", "")
    return type_.endswith(DEGRADED) and type_ != DEGRADED


def is_degraded_ignore_global(
    conditions: List[Condition], global_prefix: str = GLOBAL_DEGRADED_PREFIX
) -> bool:
    """Whether any degraded condition other than the catch-all one is True."""
    global_type = global_prefix + DEGRADED
    return any(
        _is_degraded_component(c)
        and c.get("type") != global_type
        and c.get("status") == TRUE
        for c in conditions or []
    )


def set_progressing_true(
    conditions: List[Condition], reason: str, message: str, timestamp: str = None
) -> List[Condition]:
    return set_condition(
        conditions,
        {"type": PROGRESSING, "status": TRUE, "reason": reason, "message": message},
        timestamp,
    )


def set_progressing_false(
    conditions: List[Condition], timestamp: str = None
) -> List[Condition]:
    return set_condition(
        conditions,
        {"type": PROGRESSING, "status": FALSE, "reason": "", "message": ""},
        timestamp,
    )


def set_available_true(
    conditions: List[Condition], reason: str, timestamp: str = None
) -> List[Condition]:
    return set_condition(
        conditions,
        {"type": AVAILABLE, "status": TRUE, "reason": reason, "message": ""},
        timestamp,
    )


def set_progressing_true_and_available_false(
    conditions: List[Condition], reason: str, message: str, timestamp: str = None
) -> List[Condition]:
    """Used whenever a readiness stage is not ready so the axes never contradict."""
    conds = set_progressing_true(conditions, reason, message, timestamp)
    return set_condition(
        conds,
        {"type": AVAILABLE, "status": FALSE, "reason": reason, "message": message},
        timestamp,
    )


def degraded_union(conditions: List[Condition]) -> Condition:
    """Aggregate all `<prefix>Degraded` conditions into a single Degraded view.

    The aggregate itself is never an input.
    """
    degraded = [
        c for c in conditions or [] if _is_degraded_component(c) and c.get("status") == TRUE
    ]
    if not degraded:
        return {"type": DEGRADED, "status": FALSE, "reason": "AsExpected", "message": ""}
    degraded.sort(key=lambda c: c["type"])
    return {
        "type": DEGRADED,
        "status": TRUE,
        "reason": "_".join(c["type"][: -len(DEGRADED)] or DEGRADED for c in degraded),
        "message": "\n".join(
            f"{c['type']}: {c.get('message', '')}" for c in degraded
        ),
    }
