"""WorkflowEngine end to end over in-memory repositories."""

import asyncio
from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from ruleflow.application.dtos.workflow import (
    ActionResult,
    EventTriggerParams,
    ManualTriggerParams,
    StatusChangeParams,
    TimeElapsedEntity,
)
from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.application.use_cases.workflows import EngineRegistry, WorkflowEngine
from ruleflow.application.use_cases.workflows.workflow_engine import classify_results
from ruleflow.domain.entities.workflow import Action, WorkflowRuleEntity
from ruleflow.domain.exceptions import (
    InactiveRuleException,
    InvalidExecutionStateException,
    ResourceNotFoundException,
)
from ruleflow.shared.enums import ExecutionResult
from ruleflow.shared.utils.datetime import utc_now
from tests.fakes import TENANT, RecordingWebhookClient, YieldingEntityStore, make_rule

CLOSE_ACTION = {"type": "update_status", "config": {"newStatus": "closed"}}
REPORT_ACTION = {"type": "generate_report", "config": {"reportType": "daily"}}


def _status_change(**kwargs) -> StatusChangeParams:
    values = {
        "entity_type": "project",
        "entity_id": "p1",
        "old_status": "open",
        "new_status": "done",
    }
    values.update(kwargs)
    return StatusChangeParams(**values)


@pytest.fixture(autouse=True)
def project(entity_store) -> dict:
    return entity_store.add("project", {"id": "p1", "status": "done", "amount": 250})


async def test_status_change_runs_matching_rules(engine, rule_repo, entity_store) -> None:
    rule_repo.rules = [
        make_rule("close", trigger_config={"to": ["done"]}, actions=[CLOSE_ACTION]),
        make_rule("other", trigger_config={"to": ["cancelled"]}, actions=[CLOSE_ACTION]),
    ]

    executions = await engine.handle_status_change(_status_change(context={"source": "api"}))

    assert len(executions) == 1
    execution = executions[0]
    assert execution.rule_id == "close"
    assert execution.result == ExecutionResult.SUCCESS.value
    assert execution.completed_at is not None
    assert execution.trigger_data == {
        "type": "status_change",
        "oldStatus": "open",
        "newStatus": "done",
        "source": "api",
    }
    assert entity_store.entities[("project", "p1")]["status"] == "closed"


async def test_failed_conditions_record_skipped_execution(engine, rule_repo, state_repo) -> None:
    rule_repo.rules = [
        make_rule(
            "big-only",
            conditions=[{"field": "amount", "operator": "greaterThan", "value": 1000}],
            actions=[CLOSE_ACTION],
        )
    ]

    [execution] = await engine.handle_status_change(_status_change())

    assert execution.result == ExecutionResult.SKIPPED.value
    assert execution.conditions_passed is False
    assert execution.conditions_evaluated[0]["actual"] == 250
    assert execution.actions_taken == []
    assert state_repo.states == {}


async def test_supplied_entity_skips_fetch(engine, rule_repo, entity_store) -> None:
    rule_repo.rules = [
        make_rule(conditions=[{"field": "amount", "operator": "equals", "value": 5}])
    ]

    [execution] = await engine.handle_status_change(
        _status_change(entity={"id": "p1", "amount": 5})
    )

    assert execution.conditions_passed is True
    assert entity_store.fetches == 0


async def test_previous_entity_conditions(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule(conditions=[{"field": "previous.amount", "operator": "lessThan", "value": 100}])
    ]

    [execution] = await engine.handle_status_change(
        _status_change(previous_entity={"amount": 50})
    )

    assert execution.conditions_passed is True


def test_partial_and_failed_classification() -> None:
    action = Action.from_dict(REPORT_ACTION)
    ok = ActionResult(action, True)
    bad = ActionResult(action, False, error="x")
    assert classify_results([]) == ExecutionResult.SUCCESS
    assert classify_results([ok, bad]) == ExecutionResult.PARTIAL
    assert classify_results([bad, bad]) == ExecutionResult.FAILED


async def test_partial_result_records_error_summary(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule(
            actions=[REPORT_ACTION, {"type": "webhook", "config": {"url": "https://x.test"}}]
        )
    ]

    [execution] = await engine.handle_status_change(_status_change())

    assert execution.result == ExecutionResult.PARTIAL.value
    assert execution.error_message == "webhook: Webhook client is not configured"
    assert [a["success"] for a in execution.actions_taken] == [True, False]


async def test_max_executions_blocks_without_record(engine, rule_repo, execution_repo) -> None:
    rule_repo.rules = [make_rule(max_executions=1, actions=[REPORT_ACTION])]

    first = await engine.handle_status_change(_status_change())
    second = await engine.handle_status_change(_status_change())

    assert len(first) == 1
    assert second == []
    assert len(execution_repo.executions) == 1


async def test_cooldown_blocks_second_firing(engine, rule_repo, state_repo) -> None:
    rule_repo.rules = [make_rule(cooldown_hours=1, actions=[REPORT_ACTION])]

    await engine.handle_status_change(_status_change())
    assert await engine.handle_status_change(_status_change()) == []

    key = (TENANT, "rule-1", "project", "p1")
    state = state_repo.states[key]
    state_repo.states[key] = replace(state, last_execution_at=utc_now() - timedelta(hours=2))
    assert len(await engine.handle_status_change(_status_change())) == 1
    assert state_repo.states[key].execution_count == 2


async def test_reminders_sent_counts_prior_firings(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule(
            conditions=[{"field": "remindersSent", "operator": "lessThan", "value": 2}],
            actions=[REPORT_ACTION],
        )
    ]

    results = [
        (await engine.handle_status_change(_status_change()))[0].result for _ in range(3)
    ]

    assert results == ["success", "success", "skipped"]


async def test_event_trigger(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule("paid", trigger_type="event", trigger_config={"eventType": "order.paid"}),
    ]

    [execution] = await engine.handle_event(
        EventTriggerParams(
            entity_type="order", entity_id="o1", event_type="order.paid", data={"total": 10}
        )
    )

    assert execution.trigger_data == {"type": "event", "eventType": "order.paid", "total": 10}
    assert await engine.handle_event(
        EventTriggerParams(entity_type="order", entity_id="o1", event_type="order.refunded")
    ) == []


async def test_time_elapsed_sweep(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule(
            "stale",
            trigger_type="time_elapsed",
            trigger_config={"status": "review", "hours": 48},
            actions=[REPORT_ACTION],
        )
    ]
    changed_at = utc_now() - timedelta(hours=50, minutes=30)

    executions = await engine.check_time_elapsed_triggers(
        [
            TimeElapsedEntity("project", "p1", "review", changed_at),
            TimeElapsedEntity("project", "p2", "review", utc_now() - timedelta(hours=2)),
            TimeElapsedEntity("project", "p3", "open", changed_at),
        ]
    )

    assert [e.entity_id for e in executions] == ["p1"]
    assert executions[0].trigger_data["elapsedHours"] == 50
    assert executions[0].trigger_data["status"] == "review"


async def test_manual_trigger_checks(engine, rule_repo, execution_repo) -> None:
    rule_repo.rules = [make_rule("off", trigger_type="manual", is_active=False, max_executions=1)]

    with pytest.raises(ResourceNotFoundException):
        await engine.trigger_manually(ManualTriggerParams("missing", "project", "p1"))
    with pytest.raises(InactiveRuleException):
        await engine.trigger_manually(ManualTriggerParams("off", "project", "p1"))

    params = ManualTriggerParams("off", "project", "p1", user_id="u1", bypass_checks=True)
    first = await engine.trigger_manually(params)
    second = await engine.trigger_manually(params)

    assert first.trigger_data["type"] == "manual"
    assert "triggeredAt" in first.trigger_data
    assert second is not None
    assert len(execution_repo.executions) == 2


async def test_approval_flow(engine, rule_repo, entity_store, state_repo) -> None:
    rule_repo.rules = [
        make_rule(requires_approval=True, approver_role="manager", actions=[CLOSE_ACTION])
    ]

    [pending] = await engine.handle_status_change(_status_change())
    assert pending.result == ExecutionResult.PENDING_APPROVAL.value
    assert [e.id for e in await engine.get_pending_approvals()] == [pending.id]
    assert entity_store.entities[("project", "p1")]["status"] == "done"

    approved = await engine.approve_execution(pending.id, "boss")

    assert approved.result == ExecutionResult.SUCCESS.value
    assert approved.approved_by == "boss"
    assert entity_store.entities[("project", "p1")]["status"] == "closed"
    assert state_repo.states[(TENANT, "rule-1", "project", "p1")].execution_count == 1
    assert await engine.get_pending_approvals() == []

    with pytest.raises(InvalidExecutionStateException):
        await engine.approve_execution(pending.id, "boss")
    with pytest.raises(InvalidExecutionStateException):
        await engine.reject_execution(pending.id, "boss")


async def test_reject_forces_skipped(engine, rule_repo, entity_store) -> None:
    rule_repo.rules = [make_rule(requires_approval=True, actions=[CLOSE_ACTION])]
    [pending] = await engine.handle_status_change(_status_change())

    rejected = await engine.reject_execution(pending.id, "boss", "not now")

    assert rejected.result == ExecutionResult.SKIPPED.value
    assert rejected.rejected_by == "boss"
    assert rejected.rejection_reason == "not now"
    assert entity_store.entities[("project", "p1")]["status"] == "done"
    with pytest.raises(InvalidExecutionStateException):
        await engine.approve_execution(pending.id, "boss")


async def test_unknown_execution_is_not_found(engine) -> None:
    with pytest.raises(ResourceNotFoundException):
        await engine.approve_execution("nope", "boss")
    with pytest.raises(ResourceNotFoundException):
        await engine.reject_execution("nope", "boss")


async def test_rules_are_loaded_once_and_reloaded_on_demand(engine, rule_repo) -> None:
    rule_repo.rules = [make_rule("a", priority=20)]
    await engine.handle_status_change(_status_change())
    await engine.handle_status_change(_status_change())
    assert rule_repo.loads == 1

    rule_repo.rules.append(make_rule("b"))
    assert [r.id for r in engine.get_rules()] == ["a"]
    assert [r.id for r in await engine.reload_rules()] == ["a", "b"]
    assert rule_repo.loads == 2


async def test_rules_fire_highest_priority_first(engine, rule_repo) -> None:
    rule_repo.rules = [
        make_rule("low", priority=5, actions=[REPORT_ACTION]),
        make_rule("high", priority=20, actions=[REPORT_ACTION]),
        make_rule("mid", priority=10, actions=[REPORT_ACTION]),
    ]

    executions = await engine.handle_status_change(_status_change())

    assert [r.id for r in engine.get_active_rules()] == ["high", "mid", "low"]
    assert [e.rule_id for e in executions] == ["high", "mid", "low"]


def test_equal_priority_falls_back_to_age_then_id() -> None:
    now = utc_now()
    newer = make_rule("a-newer", created_at=now)
    older = make_rule("z-older", created_at=now - timedelta(days=1))
    undated = make_rule("b-undated")
    twin = make_rule("a-twin", created_at=now)

    snapshot = EngineRegistry().replace(TENANT, [undated, newer, older, twin])

    assert [r.id for r in snapshot] == ["z-older", "a-newer", "a-twin", "b-undated"]


async def test_concurrent_firings_respect_max_executions(
    rule_repo, execution_repo, state_repo, scheduled_action_repo
) -> None:
    entity_store = YieldingEntityStore()
    entity_store.add("project", {"id": "p1", "status": "done"})
    webhook = RecordingWebhookClient()
    engine = WorkflowEngine(
        TENANT,
        rule_repo=rule_repo,
        execution_repo=execution_repo,
        state_repo=state_repo,
        scheduled_action_repo=scheduled_action_repo,
        entity_store=entity_store,
        action_executor=ActionExecutor(entity_store, webhook_client=webhook),
        registry=EngineRegistry(),
    )
    rule_repo.rules = [
        make_rule(
            max_executions=1,
            actions=[{"type": "webhook", "config": {"url": "https://x.test"}}],
        )
    ]

    results = await asyncio.gather(
        engine.handle_status_change(_status_change()),
        engine.handle_status_change(_status_change()),
    )

    assert len(webhook.calls) == 1
    assert sum(len(executions) for executions in results) == 1
    assert state_repo.states[(TENANT, "rule-1", "project", "p1")].execution_count == 1


async def test_lost_reservation_skips_actions(engine, rule_repo, state_repo, entity_store) -> None:
    rule_repo.rules = [make_rule(max_executions=1, actions=[CLOSE_ACTION])]
    state_repo.record_execution = AsyncMock(return_value=False)

    [execution] = await engine.handle_status_change(_status_change())

    assert execution.result == ExecutionResult.SKIPPED.value
    assert execution.error_message == "Execution limit reached"
    assert execution.actions_taken == []
    assert entity_store.entities[("project", "p1")]["status"] == "done"


async def test_execution_without_approval_cannot_be_approved(engine, execution_repo) -> None:
    stuck = await execution_repo.create_execution(
        TENANT,
        rule_id="rule-1",
        entity_type="project",
        entity_id="p1",
        trigger_data={},
        conditions_evaluated=[],
        conditions_passed=True,
        requires_approval=False,
    )

    with pytest.raises(InvalidExecutionStateException):
        await engine.approve_execution(stuck.id, "boss")
    with pytest.raises(InvalidExecutionStateException):
        await engine.reject_execution(stuck.id, "boss")
    assert await execution_repo.mark_approved(stuck.id, TENANT, "boss") is None
    assert execution_repo.executions[stuck.id].approved_by is None


async def test_registry_is_shared_between_engines(
    rule_repo, execution_repo, state_repo, scheduled_action_repo, entity_store, action_executor
) -> None:
    registry = EngineRegistry()
    rule_repo.rules = [make_rule("a")]

    def build() -> WorkflowEngine:
        return WorkflowEngine(
            TENANT,
            rule_repo=rule_repo,
            execution_repo=execution_repo,
            state_repo=state_repo,
            scheduled_action_repo=scheduled_action_repo,
            entity_store=entity_store,
            action_executor=action_executor,
            registry=registry,
        )

    await build().load_rules()
    await build().load_rules()

    assert rule_repo.loads == 1
    assert registry.loaded_tenants() == [TENANT]
    registry.invalidate(TENANT)
    await build().load_rules()
    assert rule_repo.loads == 2


async def test_invalid_rule_never_fires(engine, rule_repo) -> None:
    rule_repo.rules = [
        WorkflowRuleEntity.invalid(id="bad", tenant_id=TENANT, name="Bad", error="boom")
    ]

    assert await engine.handle_status_change(_status_change()) == []
    assert engine.get_active_rules() == []
