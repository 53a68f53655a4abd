"""Application DTOs (no ORM dependency)."""

from ruleflow.application.dtos.workflow import (
    ActionResult,
    ConditionResult,
    ConditionsEvaluation,
    EntityWorkflowStateResult,
    EvaluationContext,
    EventTriggerParams,
    ExecutionContext,
    ManualTriggerParams,
    ScheduledActionBatchResult,
    ScheduledActionResult,
    StatusChangeParams,
    TimeElapsedEntity,
    WorkflowExecutionResult,
)

__all__ = [
    "ActionResult",
    "ConditionResult",
    "ConditionsEvaluation",
    "EntityWorkflowStateResult",
    "EvaluationContext",
    "EventTriggerParams",
    "ExecutionContext",
    "ManualTriggerParams",
    "ScheduledActionBatchResult",
    "ScheduledActionResult",
    "StatusChangeParams",
    "TimeElapsedEntity",
    "WorkflowExecutionResult",
]
