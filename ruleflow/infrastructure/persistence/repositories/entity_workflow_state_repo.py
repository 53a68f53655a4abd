"""Entity workflow state repository (per rule/entity firing counters)."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.application.dtos.workflow import EntityWorkflowStateResult
from ruleflow.infrastructure.persistence.models.workflow import EntityWorkflowState
from ruleflow.infrastructure.persistence.repositories.base import BaseRepository
from ruleflow.shared.utils.datetime import utc_now
from ruleflow.shared.utils.generators import generate_cuid


def _to_result(s: EntityWorkflowState) -> EntityWorkflowStateResult:
    """Map EntityWorkflowState ORM to EntityWorkflowStateResult DTO."""
    return EntityWorkflowStateResult(
        tenant_id=s.tenant_id,
        rule_id=s.rule_id,
        entity_type=s.entity_type,
        entity_id=s.entity_id,
        execution_count=s.execution_count,
        last_execution_at=s.last_execution_at,
        last_execution_id=s.last_execution_id,
        state_data=s.state_data or {},
    )


class EntityWorkflowStateRepository(BaseRepository[EntityWorkflowState]):
    """Implements IEntityWorkflowStateRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, EntityWorkflowState)

    async def get_state(
        self, tenant_id: str, rule_id: str, entity_type: str, entity_id: str
    ) -> EntityWorkflowStateResult | None:
        result = await self.db.execute(
            self._tenant_query(tenant_id).where(
                EntityWorkflowState.rule_id == rule_id,
                EntityWorkflowState.entity_type == entity_type,
                EntityWorkflowState.entity_id == entity_id,
            )
        )
        state = result.scalar_one_or_none()
        return _to_result(state) if state else None

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
        """INSERT ... ON CONFLICT DO UPDATE ... WHERE <limits still allow it>.

        A first firing always inserts count=1. On conflict the existing row is
        only bumped while execution_count < max_executions and the cooldown
        has elapsed; otherwise Postgres skips the update and nothing returns.
        """
        now = utc_now()
        stmt = pg_insert(EntityWorkflowState).values(
            id=generate_cuid(),
            tenant_id=tenant_id,
            rule_id=rule_id,
            entity_type=entity_type,
            entity_id=entity_id,
            execution_count=1,
            last_execution_at=now,
            last_execution_id=execution_id,
            state_data={},
        )
        guards: list[Any] = []
        if max_executions is not None:
            guards.append(EntityWorkflowState.execution_count < max_executions)
        if cooldown_hours is not None:
            guards.append(
                or_(
                    EntityWorkflowState.last_execution_at.is_(None),
                    EntityWorkflowState.last_execution_at
                    <= now - timedelta(hours=cooldown_hours),
                )
            )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_entity_workflow_state_rule_entity",
            set_={
                "execution_count": EntityWorkflowState.execution_count + 1,
                "last_execution_at": stmt.excluded.last_execution_at,
                "last_execution_id": stmt.excluded.last_execution_id,
            },
            where=and_(*guards) if guards else None,
        ).returning(EntityWorkflowState.id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None
