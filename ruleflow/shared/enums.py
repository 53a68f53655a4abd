"""Shared enumerations for the ruleflow application.

Cross-cutting enums used by the domain, application and infrastructure
layers (trigger kinds, action kinds, condition operators, execution and
scheduled-action lifecycles).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class TriggerType(_ValuesMixin, str, Enum):
    """What causes the engine to look for matching rules."""

    STATUS_CHANGE = "status_change"
    TIME_ELAPSED = "time_elapsed"
    EVENT = "event"
    MANUAL = "manual"


class ActionType(_ValuesMixin, str, Enum):
    """Workflow action kinds (one handler per kind)."""

    SEND_MESSAGE = "send_message"
    SEND_NOTIFICATION = "send_notification"
    SLACK_NOTIFY = "slack_notify"
    SUGGEST_ACTION = "suggest_action"
    SCHEDULE_FOLLOWUP = "schedule_followup"
    UPDATE_STATUS = "update_status"
    UPDATE_FIELD = "update_field"
    CREATE_TASK = "create_task"
    ASSIGN_TO = "assign_to"
    WEBHOOK = "webhook"
    GENERATE_REPORT = "generate_report"


class ConditionOperator(_ValuesMixin, str, Enum):
    """Comparison operators available to rule conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    IN = "in"
    NOT_IN = "notIn"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"
    MATCHES = "matches"


class ExecutionResult(_ValuesMixin, str, Enum):
    """Workflow execution outcome. Only PENDING_APPROVAL is non-terminal."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"
    PENDING_APPROVAL = "pending_approval"


class ScheduledActionStatus(_ValuesMixin, str, Enum):
    """Scheduled (deferred) action lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    FAILED = "failed"
