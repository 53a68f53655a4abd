"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from ruleflow.shared.enums import (
    ActionType,
    ConditionOperator,
    ExecutionResult,
    ScheduledActionStatus,
    TriggerType,
)
from ruleflow.shared.utils import (
    ensure_utc,
    generate_cuid,
    parse_datetime,
    to_jsonable,
    utc_now,
)

__all__ = [
    "ActionType",
    "ConditionOperator",
    "ExecutionResult",
    "ScheduledActionStatus",
    "TriggerType",
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "parse_datetime",
    "to_jsonable",
]
