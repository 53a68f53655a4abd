"""Workflow engine: matches triggers to a tenant's rules and runs them.

One firing of a rule for an entity goes through:

1. Limiter check (cooldown / max executions), unless a manual trigger bypasses it.
2. Computed fields (plus remindersSent from the firing counter) and condition evaluation.
3. An execution record, created with every condition result.
4. Failed conditions -> ``skipped``; rules needing approval stay ``pending_approval``;
   otherwise actions run in order and the outcome is classified.
5. The firing counter for (rule, entity) is incremented.

Blocked firings return None and leave no execution record.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ruleflow.application.dtos.workflow import (
    EvaluationContext,
    ExecutionContext,
)
from ruleflow.application.services.computed_fields import compute_fields, compute_reminders_sent
from ruleflow.application.services.condition_evaluator import evaluate_conditions
from ruleflow.application.services.execution_limiter import ExecutionLimiter
from ruleflow.application.services.rule_matcher import RuleMatcher, whole_elapsed_hours
from ruleflow.application.use_cases.workflows.engine_registry import (
    EngineRegistry,
    get_engine_registry,
)
from ruleflow.application.use_cases.workflows.scheduled_actions import ScheduledActionProcessor
from ruleflow.domain.exceptions import (
    InactiveRuleException,
    InvalidExecutionStateException,
    ResourceNotFoundException,
)
from ruleflow.shared.enums import ExecutionResult, TriggerType
from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import parse_datetime, utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ruleflow.application.dtos.workflow import (
        ActionResult,
        EventTriggerParams,
        ManualTriggerParams,
        ScheduledActionBatchResult,
        ScheduledActionResult,
        StatusChangeParams,
        TimeElapsedEntity,
        WorkflowExecutionResult,
    )
    from ruleflow.application.interfaces.repositories import (
        IEntityStore,
        IEntityWorkflowStateRepository,
        IScheduledActionRepository,
        IWorkflowExecutionRepository,
        IWorkflowRuleRepository,
    )
    from ruleflow.application.services.action_executor import ActionExecutor
    from ruleflow.domain.entities.workflow import WorkflowRuleEntity

logger = get_logger(__name__)

LIMIT_REACHED = "Execution limit reached"


def classify_results(results: Sequence[ActionResult]) -> ExecutionResult:
    """success if every action succeeded (or there were none), partial if some did, else failed."""
    succeeded = sum(1 for r in results if r.success)
    if succeeded == len(results):
        return ExecutionResult.SUCCESS
    if succeeded > 0:
        return ExecutionResult.PARTIAL
    return ExecutionResult.FAILED


def _failure_summary(results: Sequence[ActionResult]) -> str | None:
    errors = [f"{r.action.type.value}: {r.error}" for r in results if not r.success]
    return "; ".join(errors) or None


class WorkflowEngine:
    """Tenant-scoped façade over matching, evaluation, execution and approval.

    Engines are cheap: build one per request or cron run around that unit's
    repositories. The decoded rules live in the shared EngineRegistry.
    """

    def __init__(
        self,
        tenant_id: str,
        *,
        rule_repo: IWorkflowRuleRepository,
        execution_repo: IWorkflowExecutionRepository,
        state_repo: IEntityWorkflowStateRepository,
        scheduled_action_repo: IScheduledActionRepository,
        entity_store: IEntityStore,
        action_executor: ActionExecutor,
        registry: EngineRegistry | None = None,
        scheduled_action_batch_size: int = 100,
    ) -> None:
        self.tenant_id = tenant_id
        self._rule_repo = rule_repo
        self._execution_repo = execution_repo
        self._entity_store = entity_store
        self._action_executor = action_executor
        self._limiter = ExecutionLimiter(state_repo)
        self._registry = registry or get_engine_registry()
        self._scheduled = ScheduledActionProcessor(
            tenant_id,
            scheduled_action_repo,
            entity_store,
            action_executor,
            batch_size=scheduled_action_batch_size,
        )
        self._scheduled_action_repo = scheduled_action_repo

    # -- rules ---------------------------------------------------------------

    async def load_rules(self) -> list[WorkflowRuleEntity]:
        """Load the tenant's rules into the registry unless already loaded."""
        snapshot = self._registry.get(self.tenant_id)
        if snapshot is None:
            rules = await self._rule_repo.get_rules_for_tenant(self.tenant_id)
            snapshot = self._registry.replace(self.tenant_id, rules)
        return list(snapshot)

    async def reload_rules(self) -> list[WorkflowRuleEntity]:
        """Re-read rules from storage and swap in the new snapshot."""
        rules = await self._rule_repo.get_rules_for_tenant(self.tenant_id)
        return list(self._registry.replace(self.tenant_id, rules))

    def _matcher(self) -> RuleMatcher:
        return RuleMatcher(self._registry.get(self.tenant_id) or ())

    def get_rules(self) -> list[WorkflowRuleEntity]:
        """All loaded rules (empty until load_rules has run)."""
        return list(self._registry.get(self.tenant_id) or ())

    def get_active_rules(self) -> list[WorkflowRuleEntity]:
        return self._matcher().active_rules()

    def get_rules_for_entity_type(self, entity_type: str) -> list[WorkflowRuleEntity]:
        return self._matcher().rules_for_entity_type(entity_type)

    # -- triggers ------------------------------------------------------------

    async def _resolve_entity(
        self, entity_type: str, entity_id: str, entity: dict[str, Any] | None
    ) -> dict[str, Any]:
        if entity is not None:
            return entity
        return await self._entity_store.fetch(self.tenant_id, entity_type, entity_id)

    async def handle_status_change(
        self, params: StatusChangeParams
    ) -> list[WorkflowExecutionResult]:
        """Run every rule whose status_change trigger admits old -> new status."""
        await self.load_rules()
        rules = self._matcher().match_status_change(
            params.entity_type, params.old_status, params.new_status
        )
        if not rules:
            return []
        entity = await self._resolve_entity(params.entity_type, params.entity_id, params.entity)
        trigger_data = {
            "type": TriggerType.STATUS_CHANGE.value,
            "oldStatus": params.old_status,
            "newStatus": params.new_status,
            **params.context,
        }
        executions = []
        for rule in rules:
            execution = await self._execute_rule(
                rule,
                entity_type=params.entity_type,
                entity_id=params.entity_id,
                entity=entity,
                trigger_data=trigger_data,
                previous_entity=params.previous_entity,
                user=params.user,
            )
            if execution is not None:
                executions.append(execution)
        return executions

    async def handle_event(self, params: EventTriggerParams) -> list[WorkflowExecutionResult]:
        """Run every rule listening for ``params.event_type``."""
        await self.load_rules()
        rules = self._matcher().match_event(params.entity_type, params.event_type)
        if not rules:
            return []
        entity = await self._resolve_entity(params.entity_type, params.entity_id, params.entity)
        trigger_data = {
            "type": TriggerType.EVENT.value,
            "eventType": params.event_type,
            **params.data,
        }
        executions = []
        for rule in rules:
            execution = await self._execute_rule(
                rule,
                entity_type=params.entity_type,
                entity_id=params.entity_id,
                entity=entity,
                trigger_data=trigger_data,
                user=params.user,
            )
            if execution is not None:
                executions.append(execution)
        return executions

    async def check_time_elapsed_triggers(
        self, entities: Sequence[TimeElapsedEntity]
    ) -> list[WorkflowExecutionResult]:
        """Periodic sweep: fire time_elapsed rules whose threshold each entity has passed."""
        await self.load_rules()
        matcher = self._matcher()
        executions = []
        for candidate in entities:
            now = utc_now()
            rules = matcher.match_time_elapsed(
                candidate.entity_type, candidate.status, candidate.status_changed_at, now
            )
            if not rules:
                continue
            changed_at = parse_datetime(candidate.status_changed_at)
            entity = await self._resolve_entity(
                candidate.entity_type, candidate.entity_id, candidate.entity
            )
            trigger_data = {
                "type": TriggerType.TIME_ELAPSED.value,
                "status": candidate.status,
                "statusChangedAt": changed_at.isoformat() if changed_at else None,
                "elapsedHours": whole_elapsed_hours(changed_at, now),
            }
            for rule in rules:
                execution = await self._execute_rule(
                    rule,
                    entity_type=candidate.entity_type,
                    entity_id=candidate.entity_id,
                    entity=entity,
                    trigger_data=trigger_data,
                )
                if execution is not None:
                    executions.append(execution)
        return executions

    async def trigger_manually(self, params: ManualTriggerParams) -> WorkflowExecutionResult | None:
        """Run one rule by id for one entity.

        Raises:
            ResourceNotFoundException: If the rule id is unknown for this tenant.
            InactiveRuleException: If the rule is inactive and checks are not bypassed.
        """
        await self.load_rules()
        rule = self._matcher().find_by_id(params.rule_id)
        if rule is None:
            raise ResourceNotFoundException("workflow_rule", params.rule_id)
        if not rule.is_active and not params.bypass_checks:
            raise InactiveRuleException(rule.id)
        entity = await self._resolve_entity(params.entity_type, params.entity_id, params.entity)
        return await self._execute_rule(
            rule,
            entity_type=params.entity_type,
            entity_id=params.entity_id,
            entity=entity,
            trigger_data={
                "type": TriggerType.MANUAL.value,
                "triggeredAt": utc_now().isoformat(),
            },
            user={"id": params.user_id} if params.user_id else None,
            bypass_checks=params.bypass_checks,
        )

    # -- execution -----------------------------------------------------------

    async def _execute_rule(
        self,
        rule: WorkflowRuleEntity,
        *,
        entity_type: str,
        entity_id: str,
        entity: dict[str, Any],
        trigger_data: dict[str, Any],
        previous_entity: dict[str, Any] | None = None,
        user: dict[str, Any] | None = None,
        bypass_checks: bool = False,
    ) -> WorkflowExecutionResult | None:
        state = await self._limiter.get_state(self.tenant_id, rule, entity_type, entity_id)
        if not bypass_checks and not await self._limiter.can_execute(
            self.tenant_id, rule, entity_type, entity_id, state=state
        ):
            return None

        computed = compute_fields(entity)
        computed["remindersSent"] = compute_reminders_sent(state)
        evaluation = evaluate_conditions(
            rule.conditions,
            EvaluationContext(
                entity=entity, computed=computed, previous_entity=previous_entity, user=user
            ),
        )
        execution = await self._execution_repo.create_execution(
            self.tenant_id,
            rule_id=rule.id,
            entity_type=entity_type,
            entity_id=entity_id,
            trigger_data=trigger_data,
            conditions_evaluated=[r.to_dict() for r in evaluation.results],
            conditions_passed=evaluation.passed,
            requires_approval=rule.requires_approval,
        )

        if not evaluation.passed:
            skipped = await self._execution_repo.complete_execution(
                execution.id, self.tenant_id, result=ExecutionResult.SKIPPED.value
            )
            return skipped or execution

        if rule.requires_approval:
            logger.info(
                "Execution %s of rule %s awaits approval (role=%s, tenant_id=%s)",
                execution.id,
                rule.id,
                rule.approver_role,
                self.tenant_id,
            )
            return execution

        return await self._run_actions(
            rule,
            execution,
            entity=entity,
            computed=computed,
            user=user,
            enforce_limits=not bypass_checks,
        )

    async def _run_actions(
        self,
        rule: WorkflowRuleEntity,
        execution: WorkflowExecutionResult,
        *,
        entity: dict[str, Any],
        computed: dict[str, Any],
        user: dict[str, Any] | None,
        enforce_limits: bool,
    ) -> WorkflowExecutionResult:
        # The firing is counted before any action runs; losing the guarded
        # write means another firing took the last slot.
        reserved = await self._limiter.record_execution(
            self.tenant_id,
            rule,
            execution.entity_type,
            execution.entity_id,
            execution.id,
            enforce_limits=enforce_limits,
        )
        if not reserved:
            skipped = await self._execution_repo.complete_execution(
                execution.id,
                self.tenant_id,
                result=ExecutionResult.SKIPPED.value,
                error_message=LIMIT_REACHED,
            )
            return skipped or execution

        context = ExecutionContext(
            tenant_id=self.tenant_id,
            rule_id=rule.id,
            entity_type=execution.entity_type,
            entity_id=execution.entity_id,
            entity=entity,
            trigger_data=execution.trigger_data,
            computed=computed,
            execution_id=execution.id,
            user=user,
        )
        results = await self._action_executor.execute_actions(rule.actions, context)
        outcome = classify_results(results)
        completed = await self._execution_repo.complete_execution(
            execution.id,
            self.tenant_id,
            result=outcome.value,
            actions_taken=[r.to_dict() for r in results],
            error_message=_failure_summary(results) if outcome != ExecutionResult.SUCCESS else None,
        )
        logger.info(
            "Rule %s ran %d actions for %s:%s: %s (tenant_id=%s)",
            rule.id,
            len(results),
            execution.entity_type,
            execution.entity_id,
            outcome.value,
            self.tenant_id,
        )
        return completed or execution

    # -- approval ------------------------------------------------------------

    async def get_pending_approvals(self) -> list[WorkflowExecutionResult]:
        return await self._execution_repo.get_pending_approvals(self.tenant_id)

    async def _get_pending_execution(self, execution_id: str) -> WorkflowExecutionResult:
        execution = await self._execution_repo.get_by_id_and_tenant(execution_id, self.tenant_id)
        if execution is None:
            raise ResourceNotFoundException("workflow_execution", execution_id)
        if (
            not execution.requires_approval
            or execution.result != ExecutionResult.PENDING_APPROVAL.value
            or execution.approved_by
        ):
            current = "approved" if execution.approved_by else execution.result
            raise InvalidExecutionStateException(
                execution_id, current, ExecutionResult.PENDING_APPROVAL.value
            )
        return execution

    async def approve_execution(
        self, execution_id: str, approved_by: str
    ) -> WorkflowExecutionResult:
        """Approve a held execution and run its rule's actions against fresh entity data.

        Raises:
            ResourceNotFoundException: If the execution (or its rule) does not exist.
            InvalidExecutionStateException: If the execution is not pending approval.
        """
        execution = await self._get_pending_execution(execution_id)
        await self.load_rules()
        rule = self._matcher().find_by_id(execution.rule_id)
        if rule is None:
            raise ResourceNotFoundException("workflow_rule", execution.rule_id)

        approved = await self._execution_repo.mark_approved(
            execution_id, self.tenant_id, approved_by
        )
        if approved is None:
            raise InvalidExecutionStateException(
                execution_id, "approved", ExecutionResult.PENDING_APPROVAL.value
            )
        logger.info(
            "Execution %s approved by %s (tenant_id=%s)", execution_id, approved_by, self.tenant_id
        )

        entity = await self._entity_store.fetch(
            self.tenant_id, execution.entity_type, execution.entity_id
        )
        state = await self._limiter.get_state(
            self.tenant_id, rule, execution.entity_type, execution.entity_id
        )
        computed = compute_fields(entity)
        computed["remindersSent"] = compute_reminders_sent(state)
        return await self._run_actions(
            rule,
            approved,
            entity=entity,
            computed=computed,
            user={"id": approved_by},
            enforce_limits=False,
        )

    async def reject_execution(
        self, execution_id: str, rejected_by: str, reason: str | None = None
    ) -> WorkflowExecutionResult:
        """Reject a held execution: it becomes skipped and its actions never run.

        Raises:
            ResourceNotFoundException: If the execution does not exist.
            InvalidExecutionStateException: If the execution is not pending approval.
        """
        await self._get_pending_execution(execution_id)
        rejected = await self._execution_repo.mark_rejected(
            execution_id, self.tenant_id, rejected_by, reason
        )
        if rejected is None:
            raise InvalidExecutionStateException(
                execution_id, "decided", ExecutionResult.PENDING_APPROVAL.value
            )
        logger.info(
            "Execution %s rejected by %s (tenant_id=%s)", execution_id, rejected_by, self.tenant_id
        )
        return rejected

    async def list_executions(self, **filters: Any) -> list[WorkflowExecutionResult]:
        return await self._execution_repo.list_executions(self.tenant_id, **filters)

    # -- scheduled actions ---------------------------------------------------

    async def process_scheduled_actions(self) -> ScheduledActionBatchResult:
        return await self._scheduled.process_due()

    async def cancel_scheduled_action(
        self, scheduled_action_id: str, reason: str
    ) -> ScheduledActionResult:
        return await self._scheduled.cancel(scheduled_action_id, reason)

    async def list_scheduled_actions(self, **filters: Any) -> list[ScheduledActionResult]:
        return await self._scheduled_action_repo.list_scheduled_actions(self.tenant_id, **filters)
