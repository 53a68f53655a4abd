"""Workflow API schemas."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from ruleflow.domain.entities.workflow import encode_config

if TYPE_CHECKING:
    from ruleflow.domain.entities.workflow import WorkflowRuleEntity


class WorkflowRuleResponse(BaseModel):
    """A loaded rule as the engine sees it."""

    id: str
    tenant_id: str
    name: str
    description: str | None
    is_active: bool
    priority: int
    trigger_type: str
    trigger_config: dict[str, Any]
    conditions: list[dict[str, Any]]
    actions: list[dict[str, Any]]
    cooldown_hours: float | None
    max_executions: int | None
    requires_approval: bool
    approver_role: str | None
    entity_types: list[str]
    config_error: str | None = None

    @classmethod
    def from_entity(cls, rule: WorkflowRuleEntity) -> WorkflowRuleResponse:
        return cls(
            id=rule.id,
            tenant_id=rule.tenant_id,
            name=rule.name,
            description=rule.description,
            is_active=rule.is_active,
            priority=rule.priority,
            trigger_type=rule.trigger_type.value,
            trigger_config=encode_config(rule.trigger),
            conditions=[c.to_dict() for c in rule.conditions],
            actions=[a.to_dict() for a in rule.actions],
            cooldown_hours=rule.cooldown_hours,
            max_executions=rule.max_executions,
            requires_approval=rule.requires_approval,
            approver_role=rule.approver_role,
            entity_types=list(rule.entity_types),
            config_error=rule.config_error,
        )


class RuleReloadResponse(BaseModel):
    """Result of reloading a tenant's rules."""

    loaded: int
    active: int
    invalid: int


class StatusChangeTriggerRequest(BaseModel):
    """Request body for a status transition on an entity."""

    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: str = Field(..., min_length=1, max_length=255)
    old_status: str = Field(..., max_length=128)
    new_status: str = Field(..., max_length=128)
    entity: dict[str, Any] | None = None
    previous_entity: dict[str, Any] | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    user: dict[str, Any] | None = None


class EventTriggerRequest(BaseModel):
    """Request body for a named domain event on an entity."""

    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: str = Field(..., min_length=1, max_length=255)
    event_type: str = Field(..., min_length=1, max_length=128)
    data: dict[str, Any] = Field(default_factory=dict)
    entity: dict[str, Any] | None = None
    user: dict[str, Any] | None = None


class TimeElapsedEntityRequest(BaseModel):
    """One entity in a time-elapsed sweep."""

    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: str = Field(..., min_length=1, max_length=255)
    status: str = Field(..., max_length=128)
    status_changed_at: datetime | None = None
    entity: dict[str, Any] | None = None


class TimeElapsedTriggerRequest(BaseModel):
    """Request body for a time-elapsed sweep over candidate entities."""

    entities: list[TimeElapsedEntityRequest] = Field(..., max_length=1000)


class ManualTriggerRequest(BaseModel):
    """Request body for running one rule by id."""

    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: str = Field(..., min_length=1, max_length=255)
    entity: dict[str, Any] | None = None
    user_id: str | None = None
    bypass_checks: bool = False


class ApproveExecutionRequest(BaseModel):
    """Request body for approving a held execution."""

    approved_by: str = Field(..., min_length=1, max_length=255)


class RejectExecutionRequest(BaseModel):
    """Request body for rejecting a held execution."""

    rejected_by: str = Field(..., min_length=1, max_length=255)
    reason: str | None = Field(default=None, max_length=2000)


class CancelScheduledActionRequest(BaseModel):
    """Request body for cancelling a pending scheduled action."""

    reason: str = Field(default="Cancelled manually", min_length=1, max_length=2000)


class WorkflowExecutionResponse(BaseModel):
    """Workflow execution response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    rule_id: str
    rule_name: str | None = None
    entity_type: str
    entity_id: str
    trigger_data: dict[str, Any]
    conditions_evaluated: list[dict[str, Any]]
    conditions_passed: bool
    actions_taken: list[dict[str, Any]]
    result: str
    error_message: str | None
    requires_approval: bool
    approved_by: str | None
    approved_at: datetime | None
    rejected_by: str | None
    rejected_at: datetime | None
    rejection_reason: str | None
    started_at: datetime
    completed_at: datetime | None


class ManualTriggerResponse(BaseModel):
    """Manual trigger outcome; ``execution`` is null when limits blocked the firing."""

    execution: WorkflowExecutionResponse | None


class ScheduledActionResponse(BaseModel):
    """Scheduled (deferred) action response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    rule_id: str
    execution_id: str | None
    entity_type: str
    entity_id: str
    action_type: str
    action_config: dict[str, Any]
    scheduled_for: datetime
    status: str
    cancel_if: list[dict[str, Any]]
    executed_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    error_message: str | None
    created_at: datetime


class ScheduledActionBatchResponse(BaseModel):
    """Counts from one scheduled-action processing run."""

    processed: int
    executed: int
    cancelled: int
    failed: int
    skipped: int

    @classmethod
    def from_result(cls, result: Any) -> ScheduledActionBatchResponse:
        return cls(**asdict(result))
