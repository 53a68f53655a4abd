"""DTOs for the workflow engine (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ruleflow.domain.entities.workflow import Action


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvaluationContext:
    """Data a condition path can resolve against.

    ``previous.`` paths read ``previous_entity``, ``user.`` paths read ``user``,
    ``computed.`` paths (and unprefixed computed names) read ``computed``.
    """

    entity: dict[str, Any]
    computed: dict[str, Any] = field(default_factory=dict)
    previous_entity: dict[str, Any] | None = None
    user: dict[str, Any] | None = None


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one condition, recorded on the execution for audit."""

    field: str
    operator: str
    expected: Any
    actual: Any
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "expected": self.expected,
            "actual": self.actual,
            "passed": self.passed,
        }


@dataclass(frozen=True)
class ConditionsEvaluation:
    """AND of all conditions plus every per-condition result."""

    passed: bool
    results: list[ConditionResult]


# ---------------------------------------------------------------------------
# Action execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExecutionContext:
    """Everything an action handler may read while running one rule firing."""

    tenant_id: str
    rule_id: str
    entity_type: str
    entity_id: str
    entity: dict[str, Any]
    trigger_data: dict[str, Any] = field(default_factory=dict)
    computed: dict[str, Any] = field(default_factory=dict)
    execution_id: str | None = None
    user: dict[str, Any] | None = None


@dataclass(frozen=True)
class ActionResult:
    """Structured outcome of one action. Handlers never raise; they return this."""

    action: Action
    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.to_dict(), "success": self.success}
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Trigger parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatusChangeParams:
    """A status transition reported by the host application."""

    entity_type: str
    entity_id: str
    old_status: str
    new_status: str
    entity: dict[str, Any] | None = None
    previous_entity: dict[str, Any] | None = None
    context: dict[str, Any] = field(default_factory=dict)
    user: dict[str, Any] | None = None


@dataclass(frozen=True)
class EventTriggerParams:
    """A named domain event reported by the host application."""

    entity_type: str
    entity_id: str
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    entity: dict[str, Any] | None = None
    user: dict[str, Any] | None = None


@dataclass(frozen=True)
class TimeElapsedEntity:
    """One candidate entity for the periodic time-elapsed sweep."""

    entity_type: str
    entity_id: str
    status: str
    status_changed_at: datetime | str | None
    entity: dict[str, Any] | None = None


@dataclass(frozen=True)
class ManualTriggerParams:
    """An explicit "run this rule now" request."""

    rule_id: str
    entity_type: str
    entity_id: str
    entity: dict[str, Any] | None = None
    user_id: str | None = None
    bypass_checks: bool = False


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowExecutionResult:
    """One rule firing as stored in workflow_execution."""

    id: str
    tenant_id: str
    rule_id: str
    entity_type: str
    entity_id: str
    trigger_data: dict[str, Any]
    conditions_evaluated: list[dict[str, Any]]
    conditions_passed: bool
    actions_taken: list[dict[str, Any]]
    result: str
    requires_approval: bool
    started_at: datetime
    error_message: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    completed_at: datetime | None = None
    rule_name: str | None = None


@dataclass(frozen=True)
class EntityWorkflowStateResult:
    """Per (rule, entity) firing counter used for cooldown and max-executions."""

    tenant_id: str
    rule_id: str
    entity_type: str
    entity_id: str
    execution_count: int
    last_execution_at: datetime | None
    last_execution_id: str | None
    state_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScheduledActionResult:
    """A deferred action as stored in scheduled_action."""

    id: str
    tenant_id: str
    rule_id: str
    entity_type: str
    entity_id: str
    action_type: str
    action_config: dict[str, Any]
    scheduled_for: datetime
    status: str
    cancel_if: list[dict[str, Any]]
    created_at: datetime
    execution_id: str | None = None
    executed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    error_message: str | None = None


@dataclass
class ScheduledActionBatchResult:
    """Counts for one pass of the scheduled action processor."""

    processed: int = 0
    executed: int = 0
    cancelled: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "executed": self.executed,
            "cancelled": self.cancelled,
            "failed": self.failed,
            "skipped": self.skipped,
        }
