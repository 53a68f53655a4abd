"""Scheduled action repository (deferred schedule_followup actions)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.application.dtos.workflow import ScheduledActionResult
from ruleflow.infrastructure.persistence.models.workflow import ScheduledAction
from ruleflow.infrastructure.persistence.repositories.base import BaseRepository
from ruleflow.shared.enums import ScheduledActionStatus
from ruleflow.shared.utils.datetime import utc_now
from ruleflow.shared.utils.serialization import to_jsonable


def _to_result(a: ScheduledAction) -> ScheduledActionResult:
    """Map ScheduledAction ORM to ScheduledActionResult DTO."""
    return ScheduledActionResult(
        id=a.id,
        tenant_id=a.tenant_id,
        rule_id=a.rule_id,
        entity_type=a.entity_type,
        entity_id=a.entity_id,
        action_type=a.action_type,
        action_config=a.action_config or {},
        scheduled_for=a.scheduled_for,
        status=a.status,
        cancel_if=a.cancel_if or [],
        created_at=a.created_at,
        execution_id=a.execution_id,
        executed_at=a.executed_at,
        cancelled_at=a.cancelled_at,
        cancel_reason=a.cancel_reason,
        error_message=a.error_message,
    )



_PENDING = (ScheduledActionStatus.PENDING.value,)
_PROCESSING = (ScheduledActionStatus.PROCESSING.value,)


class ScheduledActionRepository(BaseRepository[ScheduledAction]):
    """Implements IScheduledActionRepository.

    Status transitions are guarded on the row's current status; the bool
    return tells the caller whether this call won the transition. Each write
    runs in a savepoint so a failed statement leaves the batch transaction
    usable.
    """

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ScheduledAction)

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
        scheduled = ScheduledAction(
            tenant_id=tenant_id,
            rule_id=rule_id,
            execution_id=execution_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action_type=action_type,
            action_config=to_jsonable(action_config),
            scheduled_for=scheduled_for,
            cancel_if=to_jsonable(cancel_if),
            status=ScheduledActionStatus.PENDING.value,
        )
        async with self.db.begin_nested():
            created = await self._create_row(scheduled)
        return _to_result(created)

    async def get_by_id_and_tenant(
        self, scheduled_action_id: str, tenant_id: str
    ) -> ScheduledActionResult | None:
        scheduled = await self._get_row(scheduled_action_id, tenant_id)
        return _to_result(scheduled) if scheduled else None

    async def get_due(
        self, tenant_id: str, now: datetime, limit: int = 100
    ) -> list[ScheduledActionResult]:
        """Pending rows due by ``now``; rows locked by another runner are skipped."""
        q = (
            self._tenant_query(tenant_id)
            .where(
                ScheduledAction.status == ScheduledActionStatus.PENDING.value,
                ScheduledAction.scheduled_for <= now,
            )
            .order_by(ScheduledAction.scheduled_for.asc(), ScheduledAction.id.asc())
            .with_for_update(skip_locked=True)
        )
        return [_to_result(a) for a in await self._list_rows(q, 0, limit)]

    async def _transition(
        self,
        scheduled_action_id: str,
        tenant_id: str,
        from_statuses: tuple[str, ...],
        values: dict[str, Any],
    ) -> bool:
        async with self.db.begin_nested():
            result = await self.db.execute(
                update(ScheduledAction)
                .where(
                    ScheduledAction.id == scheduled_action_id,
                    ScheduledAction.tenant_id == tenant_id,
                    ScheduledAction.status.in_(from_statuses),
                )
                .values(**values)
                .returning(ScheduledAction.id)
                .execution_options(synchronize_session=False)
            )
            return result.scalar_one_or_none() is not None

    async def claim(self, scheduled_action_id: str, tenant_id: str) -> bool:
        return await self._transition(
            scheduled_action_id,
            tenant_id,
            _PENDING,
            {"status": ScheduledActionStatus.PROCESSING.value},
        )

    async def mark_executed(self, scheduled_action_id: str, tenant_id: str) -> bool:
        return await self._transition(
            scheduled_action_id,
            tenant_id,
            _PROCESSING,
            {"status": ScheduledActionStatus.EXECUTED.value, "executed_at": utc_now()},
        )

    async def mark_cancelled(
        self, scheduled_action_id: str, tenant_id: str, reason: str
    ) -> bool:
        return await self._transition(
            scheduled_action_id,
            tenant_id,
            _PENDING,
            {
                "status": ScheduledActionStatus.CANCELLED.value,
                "cancelled_at": utc_now(),
                "cancel_reason": reason,
            },
        )

    async def mark_failed(
        self, scheduled_action_id: str, tenant_id: str, error_message: str
    ) -> bool:
        return await self._transition(
            scheduled_action_id,
            tenant_id,
            _PENDING + _PROCESSING,
            {"status": ScheduledActionStatus.FAILED.value, "error_message": error_message},
        )

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
        q = self._tenant_query(tenant_id)
        if status:
            q = q.where(ScheduledAction.status == status)
        if entity_type:
            q = q.where(ScheduledAction.entity_type == entity_type)
        if entity_id:
            q = q.where(ScheduledAction.entity_id == entity_id)
        q = q.order_by(ScheduledAction.scheduled_for.asc(), ScheduledAction.id.asc())
        return [_to_result(a) for a in await self._list_rows(q, skip, limit)]
