"""Workflow rule and workflow execution repositories."""

from __future__ import annotations

from typing import Any

from sqlalchemy import distinct, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.application.dtos.workflow import WorkflowExecutionResult
from ruleflow.domain.entities.workflow import WorkflowRuleEntity
from ruleflow.domain.exceptions import RuleConfigurationException
from ruleflow.infrastructure.persistence.models.workflow import WorkflowExecution, WorkflowRule
from ruleflow.infrastructure.persistence.repositories.base import BaseRepository
from ruleflow.shared.enums import ExecutionResult
from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import utc_now
from ruleflow.shared.utils.serialization import to_jsonable

logger = get_logger(__name__)


def _rule_to_entity(r: WorkflowRule) -> WorkflowRuleEntity:
    """Decode a WorkflowRule row; a malformed row becomes an inactive placeholder."""
    attributes: dict[str, Any] = {
        "description": r.description,
        "is_active": r.is_active,
        "priority": r.priority,
        "requires_approval": r.requires_approval,
        "approver_role": r.approver_role,
        "created_at": r.created_at,
    }
    try:
        return WorkflowRuleEntity.decode(
            id=r.id,
            tenant_id=r.tenant_id,
            name=r.name,
            trigger_type=r.trigger_type,
            trigger_config=r.trigger_config,
            conditions=r.conditions,
            actions=r.actions,
            entity_types=r.entity_types,
            cooldown_hours=r.cooldown_hours,
            max_executions=r.max_executions,
            **attributes,
        )
    except RuleConfigurationException as e:
        logger.warning(
            "Workflow rule %s (tenant_id=%s) has invalid configuration and is disabled: %s",
            r.id,
            r.tenant_id,
            e.details.get("reason"),
        )
        return WorkflowRuleEntity.invalid(
            id=r.id,
            tenant_id=r.tenant_id,
            name=r.name,
            error=str(e.details.get("reason")),
            **attributes,
        )


def _execution_to_result(
    e: WorkflowExecution, rule_name: str | None = None
) -> WorkflowExecutionResult:
    """Map WorkflowExecution ORM to WorkflowExecutionResult DTO."""
    return WorkflowExecutionResult(
        id=e.id,
        tenant_id=e.tenant_id,
        rule_id=e.rule_id,
        entity_type=e.entity_type,
        entity_id=e.entity_id,
        trigger_data=e.trigger_data or {},
        conditions_evaluated=e.conditions_evaluated or [],
        conditions_passed=e.conditions_passed,
        actions_taken=e.actions_taken or [],
        result=e.result,
        requires_approval=e.requires_approval,
        started_at=e.started_at,
        error_message=e.error_message,
        approved_by=e.approved_by,
        approved_at=e.approved_at,
        rejected_by=e.rejected_by,
        rejected_at=e.rejected_at,
        rejection_reason=e.rejection_reason,
        completed_at=e.completed_at,
        rule_name=rule_name,
    )


class WorkflowRuleRepository(BaseRepository[WorkflowRule]):
    """Loads decoded rules. Implements IWorkflowRuleRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowRule)

    async def get_rules_for_tenant(self, tenant_id: str) -> list[WorkflowRuleEntity]:
        result = await self.db.execute(
            self._tenant_query(tenant_id).order_by(
                WorkflowRule.priority.desc(),
                WorkflowRule.created_at.asc(),
                WorkflowRule.id.asc(),
            )
        )
        return [_rule_to_entity(r) for r in result.scalars().all()]

    async def get_tenant_ids_with_active_rules(self) -> list[str]:
        result = await self.db.execute(
            select(distinct(WorkflowRule.tenant_id))
            .where(WorkflowRule.is_active.is_(True))
            .order_by(WorkflowRule.tenant_id)
        )
        return list(result.scalars().all())


class WorkflowExecutionRepository(BaseRepository[WorkflowExecution]):
    """Execution records and approval transitions. Implements IWorkflowExecutionRepository.

    Every transition out of pending_approval is a guarded UPDATE ... RETURNING,
    so two concurrent decisions on one execution cannot both apply.
    """

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowExecution)

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
        execution = WorkflowExecution(
            tenant_id=tenant_id,
            rule_id=rule_id,
            entity_type=entity_type,
            entity_id=entity_id,
            trigger_data=to_jsonable(trigger_data),
            conditions_evaluated=to_jsonable(conditions_evaluated),
            conditions_passed=conditions_passed,
            actions_taken=[],
            result=ExecutionResult.PENDING_APPROVAL.value,
            requires_approval=requires_approval,
        )
        return _execution_to_result(await self._create_row(execution))

    async def get_by_id_and_tenant(
        self, execution_id: str, tenant_id: str
    ) -> WorkflowExecutionResult | None:
        execution = await self._get_row(execution_id, tenant_id)
        return _execution_to_result(execution) if execution else None

    async def _update_pending(
        self,
        execution_id: str,
        tenant_id: str,
        values: dict[str, Any],
        *,
        undecided_only: bool = False,
    ) -> WorkflowExecutionResult | None:
        stmt = update(WorkflowExecution).where(
            WorkflowExecution.id == execution_id,
            WorkflowExecution.tenant_id == tenant_id,
            WorkflowExecution.result == ExecutionResult.PENDING_APPROVAL.value,
        )
        if undecided_only:
            stmt = stmt.where(
                WorkflowExecution.requires_approval.is_(True),
                WorkflowExecution.approved_by.is_(None),
                WorkflowExecution.rejected_by.is_(None),
            )
        result = await self.db.execute(
            stmt.values(**values)
            .returning(WorkflowExecution)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        execution = result.scalar_one_or_none()
        return _execution_to_result(execution) if execution else None

    async def complete_execution(
        self,
        execution_id: str,
        tenant_id: str,
        *,
        result: str,
        actions_taken: list[dict[str, Any]] | None = None,
        error_message: str | None = None,
    ) -> WorkflowExecutionResult | None:
        values: dict[str, Any] = {
            "result": result,
            "error_message": error_message,
            "completed_at": utc_now(),
        }
        if actions_taken is not None:
            values["actions_taken"] = to_jsonable(actions_taken)
        return await self._update_pending(execution_id, tenant_id, values)

    async def mark_approved(
        self, execution_id: str, tenant_id: str, approved_by: str
    ) -> WorkflowExecutionResult | None:
        return await self._update_pending(
            execution_id,
            tenant_id,
            {"approved_by": approved_by, "approved_at": utc_now()},
            undecided_only=True,
        )

    async def mark_rejected(
        self,
        execution_id: str,
        tenant_id: str,
        rejected_by: str,
        reason: str | None,
    ) -> WorkflowExecutionResult | None:
        now = utc_now()
        return await self._update_pending(
            execution_id,
            tenant_id,
            {
                "result": ExecutionResult.SKIPPED.value,
                "rejected_by": rejected_by,
                "rejected_at": now,
                "rejection_reason": reason,
                "completed_at": now,
            },
            undecided_only=True,
        )

    async def get_pending_approvals(self, tenant_id: str) -> list[WorkflowExecutionResult]:
        result = await self.db.execute(
            select(WorkflowExecution, WorkflowRule.name)
            .join(WorkflowRule, WorkflowRule.id == WorkflowExecution.rule_id)
            .where(
                WorkflowExecution.tenant_id == tenant_id,
                WorkflowExecution.result == ExecutionResult.PENDING_APPROVAL.value,
                WorkflowExecution.requires_approval.is_(True),
                WorkflowExecution.approved_by.is_(None),
            )
            .order_by(WorkflowExecution.started_at.desc())
        )
        return [_execution_to_result(e, rule_name) for e, rule_name in result.all()]

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
        q = self._tenant_query(tenant_id)
        if rule_id:
            q = q.where(WorkflowExecution.rule_id == rule_id)
        if entity_type:
            q = q.where(WorkflowExecution.entity_type == entity_type)
        if entity_id:
            q = q.where(WorkflowExecution.entity_id == entity_id)
        if result:
            q = q.where(WorkflowExecution.result == result)
        q = q.order_by(WorkflowExecution.started_at.desc(), WorkflowExecution.id.desc())
        return [_execution_to_result(e) for e in await self._list_rows(q, skip, limit)]
