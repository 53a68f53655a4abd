"""Workflow API: thin routes delegating to the tenant's WorkflowEngine."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from ruleflow.api.v1.dependencies import get_workflow_engine, get_workflow_engine_for_write
from ruleflow.application.dtos.workflow import (
    EventTriggerParams,
    ManualTriggerParams,
    StatusChangeParams,
    TimeElapsedEntity,
)
from ruleflow.application.use_cases.workflows import WorkflowEngine
from ruleflow.core.limiter import limit_triggers, limit_writes
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
    TimeElapsedTriggerRequest,
    WorkflowExecutionResponse,
    WorkflowRuleResponse,
)
from ruleflow.shared.enums import ExecutionResult, ScheduledActionStatus

router = APIRouter()

ReadEngine = Annotated[WorkflowEngine, Depends(get_workflow_engine)]
WriteEngine = Annotated[WorkflowEngine, Depends(get_workflow_engine_for_write)]


def _executions(executions) -> list[WorkflowExecutionResponse]:
    return [WorkflowExecutionResponse.model_validate(e) for e in executions]


# -- rules -------------------------------------------------------------------


@router.get("/rules", response_model=list[WorkflowRuleResponse])
async def list_rules(
    engine: ReadEngine,
    entity_type: str | None = Query(None, max_length=64),
    active_only: bool = False,
):
    """List the tenant's rules in evaluation order (priority DESC)."""
    await engine.load_rules()
    if entity_type:
        rules = engine.get_rules_for_entity_type(entity_type)
    elif active_only:
        rules = engine.get_active_rules()
    else:
        rules = engine.get_rules()
    return [WorkflowRuleResponse.from_entity(r) for r in rules]


@router.post("/rules/reload", response_model=RuleReloadResponse)
@limit_writes
async def reload_rules(request: Request, engine: ReadEngine):
    """Re-read the tenant's rules from storage (after rules were edited)."""
    rules = await engine.reload_rules()
    return RuleReloadResponse(
        loaded=len(rules),
        active=sum(1 for r in rules if r.is_active),
        invalid=sum(1 for r in rules if r.config_error),
    )


@router.post("/rules/{rule_id}/trigger", response_model=ManualTriggerResponse)
@limit_writes
async def trigger_rule(
    request: Request,
    rule_id: str,
    body: ManualTriggerRequest,
    engine: WriteEngine,
):
    """Run one rule for one entity. 404 for an unknown rule, 409 when inactive."""
    execution = await engine.trigger_manually(
        ManualTriggerParams(
            rule_id=rule_id,
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            entity=body.entity,
            user_id=body.user_id,
            bypass_checks=body.bypass_checks,
        )
    )
    return ManualTriggerResponse(
        execution=WorkflowExecutionResponse.model_validate(execution) if execution else None
    )


# -- triggers ----------------------------------------------------------------


@router.post("/triggers/status-change", response_model=list[WorkflowExecutionResponse])
@limit_triggers
async def trigger_status_change(
    request: Request,
    body: StatusChangeTriggerRequest,
    engine: WriteEngine,
):
    """Report a status transition; returns one execution per rule that fired."""
    executions = await engine.handle_status_change(
        StatusChangeParams(
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            old_status=body.old_status,
            new_status=body.new_status,
            entity=body.entity,
            previous_entity=body.previous_entity,
            context=body.context,
            user=body.user,
        )
    )
    return _executions(executions)


@router.post("/triggers/event", response_model=list[WorkflowExecutionResponse])
@limit_triggers
async def trigger_event(
    request: Request,
    body: EventTriggerRequest,
    engine: WriteEngine,
):
    """Report a named domain event on an entity."""
    executions = await engine.handle_event(
        EventTriggerParams(
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            event_type=body.event_type,
            data=body.data,
            entity=body.entity,
            user=body.user,
        )
    )
    return _executions(executions)


@router.post("/triggers/time-elapsed", response_model=list[WorkflowExecutionResponse])
@limit_triggers
async def trigger_time_elapsed(
    request: Request,
    body: TimeElapsedTriggerRequest,
    engine: WriteEngine,
):
    """Sweep candidate entities for time_elapsed rules whose threshold has passed."""
    executions = await engine.check_time_elapsed_triggers(
        [
            TimeElapsedEntity(
                entity_type=item.entity_type,
                entity_id=item.entity_id,
                status=item.status,
                status_changed_at=item.status_changed_at,
                entity=item.entity,
            )
            for item in body.entities
        ]
    )
    return _executions(executions)


# -- executions / approval -----------------------------------------------------


@router.get("/executions", response_model=list[WorkflowExecutionResponse])
async def list_executions(
    engine: ReadEngine,
    rule_id: str | None = None,
    entity_type: str | None = Query(None, max_length=64),
    entity_id: str | None = None,
    result: ExecutionResult | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """Execution history, newest first. Tenant-scoped."""
    executions = await engine.list_executions(
        rule_id=rule_id,
        entity_type=entity_type,
        entity_id=entity_id,
        result=result.value if result else None,
        skip=skip,
        limit=limit,
    )
    return _executions(executions)


@router.get("/executions/pending-approval", response_model=list[WorkflowExecutionResponse])
async def list_pending_approvals(engine: ReadEngine):
    """Executions held for approval, newest first, with rule names."""
    return _executions(await engine.get_pending_approvals())


@router.post("/executions/{execution_id}/approve", response_model=WorkflowExecutionResponse)
@limit_writes
async def approve_execution(
    request: Request,
    execution_id: str,
    body: ApproveExecutionRequest,
    engine: WriteEngine,
):
    """Approve a held execution and run its actions. 409 if it is not pending."""
    execution = await engine.approve_execution(execution_id, body.approved_by)
    return WorkflowExecutionResponse.model_validate(execution)


@router.post("/executions/{execution_id}/reject", response_model=WorkflowExecutionResponse)
@limit_writes
async def reject_execution(
    request: Request,
    execution_id: str,
    body: RejectExecutionRequest,
    engine: WriteEngine,
):
    """Reject a held execution; it becomes skipped. 409 if it is not pending."""
    execution = await engine.reject_execution(execution_id, body.rejected_by, body.reason)
    return WorkflowExecutionResponse.model_validate(execution)


# -- scheduled actions -----------------------------------------------------------


@router.get("/scheduled-actions", response_model=list[ScheduledActionResponse])
async def list_scheduled_actions(
    engine: ReadEngine,
    status: ScheduledActionStatus | None = None,
    entity_type: str | None = Query(None, max_length=64),
    entity_id: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """Scheduled actions, soonest first. Tenant-scoped."""
    scheduled = await engine.list_scheduled_actions(
        status=status.value if status else None,
        entity_type=entity_type,
        entity_id=entity_id,
        skip=skip,
        limit=limit,
    )
    return [ScheduledActionResponse.model_validate(s) for s in scheduled]


@router.post("/scheduled-actions/process", response_model=ScheduledActionBatchResponse)
@limit_writes
async def process_scheduled_actions(request: Request, engine: WriteEngine):
    """Run one batch of due scheduled actions for the tenant."""
    return ScheduledActionBatchResponse.from_result(await engine.process_scheduled_actions())


@router.post(
    "/scheduled-actions/{scheduled_action_id}/cancel",
    response_model=ScheduledActionResponse,
)
@limit_writes
async def cancel_scheduled_action(
    request: Request,
    scheduled_action_id: str,
    body: CancelScheduledActionRequest,
    engine: WriteEngine,
):
    """Cancel a pending scheduled action. 409 if it already ran or was cancelled."""
    scheduled = await engine.cancel_scheduled_action(scheduled_action_id, body.reason)
    return ScheduledActionResponse.model_validate(scheduled)
