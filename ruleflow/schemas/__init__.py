"""Pydantic request/response schemas for the API."""

from ruleflow.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)
from ruleflow.schemas.workflow import (
    ApproveExecutionRequest,
    CancelScheduledActionRequest,
    EventTriggerRequest,
    ManualTriggerRequest,
    ManualTriggerResponse,
    RejectExecutionRequest,
    RuleReloadResponse,
    ScheduledActionBatchResponse,
    ScheduledActionResponse,
    StatusChangeTriggerRequest,
    TimeElapsedEntityRequest,
    TimeElapsedTriggerRequest,
    WorkflowExecutionResponse,
    WorkflowRuleResponse,
)

__all__ = [
    "ApproveExecutionRequest",
    "CancelScheduledActionRequest",
    "EventTriggerRequest",
    "HealthResponse",
    "ManualTriggerRequest",
    "ManualTriggerResponse",
    "ReadinessErrorResponse",
    "ReadinessResponse",
    "RejectExecutionRequest",
    "RuleReloadResponse",
    "ScheduledActionBatchResponse",
    "ScheduledActionResponse",
    "StatusChangeTriggerRequest",
    "TimeElapsedEntityRequest",
    "TimeElapsedTriggerRequest",
    "WorkflowExecutionResponse",
    "WorkflowRuleResponse",
]
