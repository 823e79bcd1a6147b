"""Utilities for managing status conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_AVAILABLE,
    COND_FAILING,
    COND_PROGRESSING,
    COND_REMOVED,
    CONDITION_FALSE,
    CONDITION_TRUE,
)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    lastTransitionTime only moves when the status flips, so re-applying an
    identical condition leaves the list unchanged.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if existing_idx is not None:
        existing = conditions[existing_idx]
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def _status(value: bool) -> str:
    return CONDITION_TRUE if value else CONDITION_FALSE


def set_available_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Set the Available condition."""
    return update_condition(conditions, COND_AVAILABLE, _status(status), reason, message)


def set_progressing_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Set the Progressing condition."""
    return update_condition(conditions, COND_PROGRESSING, _status(status), reason, message)


def set_removed_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str = "",
) -> list[dict[str, Any]]:
    """Set the Removed condition."""
    return update_condition(
        conditions,
        COND_REMOVED,
        _status(status),
        "Removed" if status else "NotRemoved",
        message,
    )


def set_failing_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Set the Failing condition."""
    return update_condition(conditions, COND_FAILING, _status(status), reason, message)
