"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs or domain entities only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import (
        EntityWorkflowStateResult,
        ScheduledActionResult,
        WorkflowExecutionResult,
    )
    from ruleflow.domain.entities.workflow import WorkflowRuleEntity


# Workflow rule repository interface
class IWorkflowRuleRepository(Protocol):
    """Protocol for loading decoded workflow rules (DIP)."""

    async def get_rules_for_tenant(self, tenant_id: str) -> list[WorkflowRuleEntity]:
        """Return all rules for tenant, priority DESC then created_at ASC.

        Rules whose stored JSON does not decode are returned inactive.
        """

    async def get_tenant_ids_with_active_rules(self) -> list[str]:
        """Return tenants that have at least one active rule (for cron scripts)."""


# Workflow execution repository interface
class IWorkflowExecutionRepository(Protocol):
    """Protocol for workflow execution records (DIP)."""

    async def create_execution(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        trigger_data: dict[str, Any],
        conditions_evaluated: list[dict[str, Any]],
        conditions_passed: bool,
        requires_approval: bool,
    ) -> WorkflowExecutionResult:
        """Insert an execution with result pending_approval (the creation default)."""

    async def get_by_id_and_tenant(
        self, execution_id: str, tenant_id: str
    ) -> WorkflowExecutionResult | None:
        """Return execution by id in tenant."""

    async def complete_execution(
        self,
        execution_id: str,
        tenant_id: str,
        *,
        result: str,
        actions_taken: list[dict[str, Any]] | None = None,
        error_message: str | None = None,
    ) -> WorkflowExecutionResult | None:
        """Set a terminal result and completed_at on a pending execution."""

    async def mark_approved(
        self, execution_id: str, tenant_id: str, approved_by: str
    ) -> WorkflowExecutionResult | None:
        """Record approval on a pending, not yet decided execution. None if it was not pending."""

    async def mark_rejected(
        self,
        execution_id: str,
        tenant_id: str,
        rejected_by: str,
        reason: str | None,
    ) -> WorkflowExecutionResult | None:
        """Record rejection (result skipped) on a pending execution. None if it was not pending."""

    async def get_pending_approvals(self, tenant_id: str) -> list[WorkflowExecutionResult]:
        """Return executions awaiting approval, newest first, with rule names."""

    async def list_executions(
        self,
        tenant_id: str,
        *,
        rule_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        result: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[WorkflowExecutionResult]:
        """Return executions for tenant (newest first) with optional filters."""


# Entity workflow state repository interface
class IEntityWorkflowStateRepository(Protocol):
    """Protocol for per (rule, entity) firing counters (DIP)."""

    async def get_state(
        self, tenant_id: str, rule_id: str, entity_type: str, entity_id: str
    ) -> EntityWorkflowStateResult | None:
        """Return state row or None when the rule never fired for the entity."""

    async def record_execution(
        self,
        tenant_id: str,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        execution_id: str,
        *,
        max_executions: int | None = None,
        cooldown_hours: float | None = None,
    ) -> bool:
        """Atomically upsert count+1, last_execution_at and last_execution_id.

        When limits are given the update only applies while they still allow
        another firing. Returns False when no row was written (blocked).
        """


# Scheduled action repository interface
class IScheduledActionRepository(Protocol):
    """Protocol for deferred actions (DIP)."""

    async def create_scheduled_action(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        execution_id: str | None,
        entity_type: str,
        entity_id: str,
        action_type: str,
        action_config: dict[str, Any],
        scheduled_for: datetime,
        cancel_if: list[dict[str, Any]],
    ) -> ScheduledActionResult:
        """Insert a pending scheduled action."""

    async def get_by_id_and_tenant(
        self, scheduled_action_id: str, tenant_id: str
    ) -> ScheduledActionResult | None:
        """Return scheduled action by id in tenant."""

    async def get_due(
        self, tenant_id: str, now: datetime, limit: int = 100
    ) -> list[ScheduledActionResult]:
        """Return pending actions with scheduled_for <= now, oldest due first."""

    async def claim(self, scheduled_action_id: str, tenant_id: str) -> bool:
        """pending -> processing. Only the caller that gets True may run the action."""

    async def mark_executed(self, scheduled_action_id: str, tenant_id: str) -> bool:
        """processing -> executed. Returns False if the row was not claimed."""

    async def mark_cancelled(
        self, scheduled_action_id: str, tenant_id: str, reason: str
    ) -> bool:
        """pending -> cancelled. Returns False if the row was no longer pending."""

    async def mark_failed(
        self, scheduled_action_id: str, tenant_id: str, error_message: str
    ) -> bool:
        """pending or processing -> failed. Returns False once the row is settled."""

    async def list_scheduled_actions(
        self,
        tenant_id: str,
        *,
        status: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[ScheduledActionResult]:
        """Return scheduled actions for tenant (soonest first) with optional filters."""


# Entity store interface
class IEntityStore(Protocol):
    """Protocol for reading and updating host entities (projects, tasks, orders...)."""

    async def fetch(self, tenant_id: str, entity_type: str, entity_id: str) -> dict[str, Any]:
        """Return the entity's fields, or {"id": entity_id} when unknown or missing."""

    async def update_status(
        self, tenant_id: str, entity_type: str, entity_id: str, status: str
    ) -> None:
        """Set the entity's status column."""

    async def update_column(
        self, tenant_id: str, entity_type: str, entity_id: str, column: str, value: Any
    ) -> None:
        """Set one direct column on the entity's table."""

    async def merge_metadata(
        self, tenant_id: str, entity_type: str, entity_id: str, path: list[str], value: Any
    ) -> None:
        """Write ``value`` at ``path`` inside the entity's JSON metadata column."""

    async def assign(
        self, tenant_id: str, entity_type: str, entity_id: str, assignee_id: str
    ) -> None:
        """Set the entity's assignee columns."""

    def supports(self, entity_type: str) -> bool:
        """Return whether the entity type has a backing table."""


# Task repository interface
class ITaskRepository(Protocol):
    """Protocol for creating host tasks from workflow actions."""

    async def create_task(
        self,
        tenant_id: str,
        *,
        title: str,
        description: str,
        priority: str,
        assigned_to: str | None,
        due_date: datetime | None,
        source_ref: str,
        project_id: str | None,
        created_by: str | None,
    ) -> str:
        """Insert a task with source_type 'workflow'. Returns the task id."""
