"""Cooldown and max-execution gate for a (rule, entity) pair."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import ensure_utc, utc_now

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import EntityWorkflowStateResult
    from ruleflow.application.interfaces.repositories import IEntityWorkflowStateRepository
    from ruleflow.domain.entities.workflow import WorkflowRuleEntity

logger = get_logger(__name__)


def blocked_reason(
    rule: WorkflowRuleEntity,
    state: EntityWorkflowStateResult | None,
    now: datetime | None = None,
) -> str | None:
    """Return why the rule may not fire for this entity, or None if it may."""
    if state is None:
        return None
    if rule.max_executions is not None and state.execution_count >= rule.max_executions:
        return f"max executions reached ({state.execution_count}/{rule.max_executions})"
    if rule.cooldown_hours is not None and state.last_execution_at is not None:
        cooldown_ends = ensure_utc(state.last_execution_at) + timedelta(hours=rule.cooldown_hours)
        if (now or utc_now()) < cooldown_ends:
            return f"cooldown active until {cooldown_ends.isoformat()}"
    return None


class ExecutionLimiter:
    """Reads and records EntityWorkflowState for the engine."""

    def __init__(self, state_repo: IEntityWorkflowStateRepository) -> None:
        self._state_repo = state_repo

    async def get_state(
        self, tenant_id: str, rule: WorkflowRuleEntity, entity_type: str, entity_id: str
    ) -> EntityWorkflowStateResult | None:
        return await self._state_repo.get_state(tenant_id, rule.id, entity_type, entity_id)

    async def can_execute(
        self,
        tenant_id: str,
        rule: WorkflowRuleEntity,
        entity_type: str,
        entity_id: str,
        state: EntityWorkflowStateResult | None = None,
    ) -> bool:
        """Read-only check. Pass ``state`` when it has already been loaded."""
        if state is None:
            state = await self.get_state(tenant_id, rule, entity_type, entity_id)
        reason = blocked_reason(rule, state)
        if reason:
            logger.debug(
                "Rule %s blocked for %s:%s (tenant_id=%s): %s",
                rule.id,
                entity_type,
                entity_id,
                tenant_id,
                reason,
            )
            return False
        return True

    async def record_execution(
        self,
        tenant_id: str,
        rule: WorkflowRuleEntity,
        entity_type: str,
        entity_id: str,
        execution_id: str,
        *,
        enforce_limits: bool = True,
    ) -> bool:
        """Reserve a firing with one conditional upsert, before its actions run.

        With ``enforce_limits`` the counter only moves while the cooldown and
        max-execution guards still hold, so of two racing firings at most one
        wins the last slot. Returns False when the guard rejected the write and
        the caller must not run the actions.
        """
        recorded = await self._state_repo.record_execution(
            tenant_id,
            rule.id,
            entity_type,
            entity_id,
            execution_id,
            max_executions=rule.max_executions if enforce_limits else None,
            cooldown_hours=rule.cooldown_hours if enforce_limits else None,
        )
        if not recorded:
            logger.warning(
                "Execution %s of rule %s for %s:%s skipped: limit reached concurrently "
                "(tenant_id=%s)",
                execution_id,
                rule.id,
                entity_type,
                entity_id,
                tenant_id,
            )
        return recorded
