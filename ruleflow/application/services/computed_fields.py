"""Derived, time-relative fields exposed to rule conditions and templates.

Values are floored to whole units. Field names are camelCase because rule
authors reference them directly in conditions (``daysSinceDue``) and
templates (``{hoursInStatus}``).
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ruleflow.shared.utils.datetime import parse_datetime, utc_now

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import EntityWorkflowStateResult

_SECONDS_PER_HOUR = 3600
_SECONDS_PER_DAY = 86400

CLOSED_STATUSES = frozenset({"completed", "done", "cancelled"})


def _first_timestamp(entity: dict[str, Any], *keys: str) -> datetime | None:
    for key in keys:
        parsed = parse_datetime(entity.get(key))
        if parsed is not None:
            return parsed
    return None


def _whole_units_since(value: datetime, now: datetime, unit_seconds: int) -> int:
    return math.floor((now - value).total_seconds() / unit_seconds)


def compute_days_since(value: Any, now: datetime | None = None) -> int | None:
    """Whole days between ``value`` and now; None when absent or unparsable."""
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return _whole_units_since(parsed, now or utc_now(), _SECONDS_PER_DAY)


def compute_hours_in_status(entity: dict[str, Any], now: datetime | None = None) -> int:
    """Whole hours since the status changed (falls back to the last update), 0 when missing."""
    changed_at = _first_timestamp(
        entity, "statusChangedAt", "status_changed_at", "updatedAt", "updated_at"
    )
    if changed_at is None:
        return 0
    return _whole_units_since(changed_at, now or utc_now(), _SECONDS_PER_HOUR)


def compute_reminders_sent(state: EntityWorkflowStateResult | dict[str, Any] | None) -> int:
    """Number of prior firings for this (rule, entity); 0 when the rule never fired."""
    if state is None:
        return 0
    if isinstance(state, dict):
        return int(state.get("remindersSent") or 0)
    return state.execution_count


def is_overdue(entity: dict[str, Any], now: datetime | None = None) -> bool:
    """True when the due date has passed and the entity is not in a closed status."""
    due = _first_timestamp(entity, "dueDate", "due_date")
    if due is None:
        return False
    status = entity.get("status")
    if isinstance(status, str) and status.lower() in CLOSED_STATUSES:
        return False
    return due < (now or utc_now())


def compute_fields(entity: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Return all derived fields for ``entity`` evaluated at ``now``.

    daysSinceDue is negative while the due date is still in the future and
    None when the entity has no due date.
    """
    now = now or utc_now()
    updated_at = _first_timestamp(entity, "updatedAt", "updated_at")
    days_since_updated = compute_days_since(updated_at, now)
    return {
        "daysSinceCreated": compute_days_since(
            _first_timestamp(entity, "createdAt", "created_at"), now
        ),
        "daysSinceUpdated": days_since_updated,
        "daysSinceLastUpdate": days_since_updated or 0,
        "hoursInStatus": compute_hours_in_status(entity, now),
        "daysSinceDue": compute_days_since(_first_timestamp(entity, "dueDate", "due_date"), now),
        "isOverdue": is_overdue(entity, now),
    }
