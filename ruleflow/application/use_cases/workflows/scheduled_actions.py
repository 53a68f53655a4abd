"""Runs deferred (schedule_followup) actions that have come due.

Each due row is handled on its own: a failure is recorded on that row and the
batch moves on. A row is claimed (pending -> processing) before its action
runs, and only the run that wins the claim executes it, so overlapping runs
fire each action at most once. A row left in processing by a crashed run is
not retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ruleflow.application.dtos.workflow import (
    EvaluationContext,
    ExecutionContext,
    ScheduledActionBatchResult,
)
from ruleflow.application.services.computed_fields import compute_fields
from ruleflow.application.services.condition_evaluator import evaluate_conditions
from ruleflow.domain.entities.workflow import Action, decode_conditions
from ruleflow.domain.exceptions import InvalidExecutionStateException, ResourceNotFoundException
from ruleflow.shared.enums import ScheduledActionStatus
from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from ruleflow.application.dtos.workflow import ScheduledActionResult
    from ruleflow.application.interfaces.repositories import (
        IEntityStore,
        IScheduledActionRepository,
    )
    from ruleflow.application.services.action_executor import ActionExecutor

logger = get_logger(__name__)

CANCEL_CONDITIONS_MET = "Cancellation conditions met"
SCHEDULED_TRIGGER = {"type": "scheduled_followup"}


class ScheduledActionProcessor:
    """Polls due scheduled actions for one tenant and executes or cancels them."""

    def __init__(
        self,
        tenant_id: str,
        scheduled_action_repo: IScheduledActionRepository,
        entity_store: IEntityStore,
        action_executor: ActionExecutor,
        *,
        batch_size: int = 100,
    ) -> None:
        self.tenant_id = tenant_id
        self._repo = scheduled_action_repo
        self._entity_store = entity_store
        self._action_executor = action_executor
        self._batch_size = batch_size

    async def process_due(self, now: datetime | None = None) -> ScheduledActionBatchResult:
        """Handle up to one batch of due actions, oldest due first."""
        due = await self._repo.get_due(self.tenant_id, now or utc_now(), self._batch_size)
        summary = ScheduledActionBatchResult()
        for scheduled in due:
            summary.processed += 1
            try:
                outcome = await self._process_one(scheduled)
            except Exception as e:
                logger.exception(
                    "Scheduled action %s failed (tenant_id=%s)", scheduled.id, self.tenant_id
                )
                outcome = await self._record_failure(scheduled.id, str(e) or e.__class__.__name__)
            if outcome == ScheduledActionStatus.EXECUTED:
                summary.executed += 1
            elif outcome == ScheduledActionStatus.CANCELLED:
                summary.cancelled += 1
            elif outcome == ScheduledActionStatus.FAILED:
                summary.failed += 1
            else:
                summary.skipped += 1
        if summary.processed:
            logger.info(
                "Processed scheduled actions for tenant %s: %s", self.tenant_id, summary.to_dict()
            )
        return summary

    async def _record_failure(
        self, scheduled_action_id: str, error_message: str
    ) -> ScheduledActionStatus | None:
        try:
            recorded = await self._repo.mark_failed(
                scheduled_action_id, self.tenant_id, error_message
            )
        except Exception:
            logger.exception(
                "Could not record failure of scheduled action %s (tenant_id=%s)",
                scheduled_action_id,
                self.tenant_id,
            )
            return None
        return ScheduledActionStatus.FAILED if recorded else None

    async def _process_one(self, scheduled: ScheduledActionResult) -> ScheduledActionStatus | None:
        """Return the status the row moved to, or None if another run owns it."""
        entity = await self._entity_store.fetch(
            self.tenant_id, scheduled.entity_type, scheduled.entity_id
        )
        computed = compute_fields(entity)

        cancel_if = decode_conditions(scheduled.cancel_if)
        if cancel_if:
            evaluation = evaluate_conditions(cancel_if, EvaluationContext(entity, computed))
            if evaluation.passed:
                cancelled = await self._repo.mark_cancelled(
                    scheduled.id, self.tenant_id, CANCEL_CONDITIONS_MET
                )
                return ScheduledActionStatus.CANCELLED if cancelled else None

        if not await self._repo.claim(scheduled.id, self.tenant_id):
            return None

        action = Action.from_dict({"type": scheduled.action_type, "config": scheduled.action_config})
        context = ExecutionContext(
            tenant_id=self.tenant_id,
            rule_id=scheduled.rule_id,
            entity_type=scheduled.entity_type,
            entity_id=scheduled.entity_id,
            entity=entity,
            trigger_data=dict(SCHEDULED_TRIGGER),
            computed=computed,
            execution_id=scheduled.execution_id,
        )
        result = await self._action_executor.execute_action(action, context)
        if result.success:
            executed = await self._repo.mark_executed(scheduled.id, self.tenant_id)
            return ScheduledActionStatus.EXECUTED if executed else None
        failed = await self._repo.mark_failed(
            scheduled.id, self.tenant_id, result.error or "Action failed"
        )
        return ScheduledActionStatus.FAILED if failed else None

    async def cancel(self, scheduled_action_id: str, reason: str) -> ScheduledActionResult:
        """Cancel a pending scheduled action.

        Raises:
            ResourceNotFoundException: If the id is unknown in this tenant.
            InvalidExecutionStateException: If the action is no longer pending.
        """
        scheduled = await self._repo.get_by_id_and_tenant(scheduled_action_id, self.tenant_id)
        if scheduled is None:
            raise ResourceNotFoundException("scheduled_action", scheduled_action_id)
        if not await self._repo.mark_cancelled(scheduled_action_id, self.tenant_id, reason):
            raise InvalidExecutionStateException(
                scheduled_action_id,
                scheduled.status,
                ScheduledActionStatus.PENDING.value,
                resource_type="scheduled_action",
            )
        updated = await self._repo.get_by_id_and_tenant(scheduled_action_id, self.tenant_id)
        return updated or scheduled
