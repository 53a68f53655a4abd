"""Workflow rule, execution, firing-state and scheduled-action ORM models."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ruleflow.infrastructure.persistence.database import Base
from ruleflow.infrastructure.persistence.models.mixins import (
    AuditedMultiTenantModel,
    MultiTenantModel,
)
from ruleflow.shared.enums import ExecutionResult, ScheduledActionStatus, TriggerType


def _in_values(column: str, values: list[str]) -> str:
    quoted = ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    return f"{column} IN ({quoted})"


class WorkflowRule(AuditedMultiTenantModel, Base):
    """Declarative automation rule. Table: workflow_rule. Trigger, conditions and actions are JSON."""

    __tablename__ = "workflow_rule"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10, server_default=sa.text("10")
    )
    trigger_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    trigger_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    cooldown_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_executions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requires_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    approver_role: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_workflow_rule_tenant_active_priority", "tenant_id", "is_active", "priority"),
        CheckConstraint(
            _in_values("trigger_type", TriggerType.values()),
            name="workflow_rule_trigger_type_check",
        ),
    )


class WorkflowExecution(MultiTenantModel, Base):
    """One firing of a rule for an entity. Table: workflow_execution."""

    __tablename__ = "workflow_execution"

    rule_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_rule.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    trigger_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    conditions_evaluated: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    conditions_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    actions_taken: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    result: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=ExecutionResult.PENDING_APPROVAL.value,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_workflow_execution_entity", "tenant_id", "entity_type", "entity_id"),
        Index("ix_workflow_execution_tenant_started", "tenant_id", "started_at"),
        Index(
            "ix_workflow_execution_pending",
            "tenant_id",
            postgresql_where=sa.text("result = 'pending_approval'"),
        ),
        CheckConstraint(
            _in_values("result", ExecutionResult.values()),
            name="workflow_execution_result_check",
        ),
    )


class EntityWorkflowState(MultiTenantModel, Base):
    """Firing counter per (rule, entity). Table: entity_workflow_state."""

    __tablename__ = "entity_workflow_state"

    rule_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_rule.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    execution_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    last_execution_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_execution_id: Mapped[str | None] = mapped_column(String, nullable=True)
    state_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "rule_id",
            "entity_type",
            "entity_id",
            name="uq_entity_workflow_state_rule_entity",
        ),
    )


class ScheduledAction(MultiTenantModel, Base):
    """Deferred action created by schedule_followup. Table: scheduled_action."""

    __tablename__ = "scheduled_action"

    rule_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_rule.id", ondelete="CASCADE"),
        nullable=False,
    )
    execution_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("workflow_execution.id", ondelete="SET NULL"),
        nullable=True,
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    action_type: Mapped[str] = mapped_column(String, nullable=False)
    action_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_if: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=ScheduledActionStatus.PENDING.value,
        index=True,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index(
            "ix_scheduled_action_pending_due",
            "tenant_id",
            "scheduled_for",
            postgresql_where=sa.text("status = 'pending'"),
        ),
        Index("ix_scheduled_action_entity", "tenant_id", "entity_type", "entity_id"),
        CheckConstraint(
            _in_values("status", ScheduledActionStatus.values()),
            name="scheduled_action_status_check",
        ),
    )
