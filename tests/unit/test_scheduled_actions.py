"""Scheduled (follow-up) action processing and cancellation."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from ruleflow.application.dtos.workflow import StatusChangeParams
from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.application.use_cases.workflows import ScheduledActionProcessor
from ruleflow.domain.exceptions import InvalidExecutionStateException, ResourceNotFoundException
from ruleflow.shared.enums import ScheduledActionStatus
from ruleflow.shared.utils.datetime import utc_now
from tests.fakes import TENANT, RecordingWebhookClient, YieldingEntityStore, make_rule


async def _schedule(repo, *, action_type="update_status", config=None, cancel_if=None, due_in=-1):
    return await repo.create_scheduled_action(
        TENANT,
        rule_id="rule-1",
        execution_id="exec-1",
        entity_type="project",
        entity_id="p1",
        action_type=action_type,
        action_config=config if config is not None else {"newStatus": "stale"},
        scheduled_for=utc_now() + timedelta(minutes=due_in),
        cancel_if=cancel_if or [],
    )


@pytest.fixture
def processor(scheduled_action_repo, entity_store, action_executor) -> ScheduledActionProcessor:
    entity_store.add("project", {"id": "p1", "status": "open"})
    return ScheduledActionProcessor(TENANT, scheduled_action_repo, entity_store, action_executor)


async def test_due_action_executes_once(processor, scheduled_action_repo, entity_store) -> None:
    scheduled = await _schedule(scheduled_action_repo)
    await _schedule(scheduled_action_repo, due_in=60)

    summary = await processor.process_due()
    again = await processor.process_due()

    assert summary.to_dict() == {
        "processed": 1,
        "executed": 1,
        "cancelled": 0,
        "failed": 0,
        "skipped": 0,
    }
    assert again.processed == 0
    assert scheduled_action_repo.actions[scheduled.id].status == ScheduledActionStatus.EXECUTED
    assert entity_store.entities[("project", "p1")]["status"] == "stale"


async def test_cancel_if_met_cancels(processor, scheduled_action_repo, entity_store) -> None:
    scheduled = await _schedule(
        scheduled_action_repo,
        cancel_if=[{"field": "status", "operator": "equals", "value": "open"}],
    )

    summary = await processor.process_due()

    assert summary.cancelled == 1
    stored = scheduled_action_repo.actions[scheduled.id]
    assert stored.status == ScheduledActionStatus.CANCELLED
    assert stored.cancel_reason == "Cancellation conditions met"
    assert entity_store.entities[("project", "p1")]["status"] == "open"


async def test_cancel_if_not_met_runs_action(processor, scheduled_action_repo) -> None:
    await _schedule(
        scheduled_action_repo,
        cancel_if=[{"field": "status", "operator": "equals", "value": "done"}],
    )
    assert (await processor.process_due()).executed == 1


async def test_failed_action_is_recorded(processor, scheduled_action_repo) -> None:
    scheduled = await _schedule(scheduled_action_repo, config={})

    summary = await processor.process_due()

    assert summary.failed == 1
    stored = scheduled_action_repo.actions[scheduled.id]
    assert stored.status == ScheduledActionStatus.FAILED
    assert stored.error_message == "No status specified"


async def test_unexpected_error_fails_row_and_batch_continues(
    scheduled_action_repo, entity_store, action_executor
) -> None:
    failing_store = AsyncMock(wraps=entity_store)
    failing_store.fetch.side_effect = [RuntimeError("db gone"), {"id": "p1"}]
    processor = ScheduledActionProcessor(
        TENANT, scheduled_action_repo, failing_store, action_executor
    )
    first = await _schedule(scheduled_action_repo, action_type="generate_report", due_in=-10)
    second = await _schedule(scheduled_action_repo, action_type="generate_report", due_in=-5)

    summary = await processor.process_due()

    assert summary.failed == 1
    assert summary.executed == 1
    assert scheduled_action_repo.actions[first.id].error_message == "db gone"
    assert scheduled_action_repo.actions[second.id].status == ScheduledActionStatus.EXECUTED


async def test_batch_size_limits_one_pass(
    scheduled_action_repo, entity_store, action_executor
) -> None:
    processor = ScheduledActionProcessor(
        TENANT, scheduled_action_repo, entity_store, action_executor, batch_size=2
    )
    for _ in range(3):
        await _schedule(scheduled_action_repo, action_type="generate_report")

    assert (await processor.process_due()).processed == 2
    assert (await processor.process_due()).processed == 1


async def test_cancel_pending_action(processor, scheduled_action_repo) -> None:
    scheduled = await _schedule(scheduled_action_repo, due_in=60)

    cancelled = await processor.cancel(scheduled.id, "Customer replied")

    assert cancelled.status == ScheduledActionStatus.CANCELLED
    assert cancelled.cancel_reason == "Customer replied"
    with pytest.raises(InvalidExecutionStateException):
        await processor.cancel(scheduled.id, "again")
    with pytest.raises(ResourceNotFoundException):
        await processor.cancel("missing", "x")


async def test_engine_schedules_then_processes_followup(engine, rule_repo, entity_store) -> None:
    entity_store.add("project", {"id": "p1", "status": "open"})
    rule_repo.rules = [
        make_rule(
            actions=[
                {
                    "type": "schedule_followup",
                    "config": {
                        "delayHours": 0,
                        "action": {"type": "update_status", "config": {"newStatus": "nudged"}},
                    },
                }
            ]
        )
    ]

    [execution] = await engine.handle_status_change(
        StatusChangeParams("project", "p1", "draft", "open")
    )
    summary = await engine.process_scheduled_actions()

    assert execution.actions_taken[0]["result"]["scheduled_action_id"]
    assert summary.executed == 1
    assert entity_store.entities[("project", "p1")]["status"] == "nudged"
    listed = await engine.list_scheduled_actions()
    assert [a.status for a in listed] == ["executed"]


async def test_overlapping_runs_fire_action_once(scheduled_action_repo) -> None:
    entity_store = YieldingEntityStore()
    entity_store.add("project", {"id": "p1", "status": "open"})
    webhook = RecordingWebhookClient()
    executor = ActionExecutor(entity_store, webhook_client=webhook)
    scheduled = await _schedule(
        scheduled_action_repo, action_type="webhook", config={"url": "https://hooks.test/x"}
    )
    runs = [
        ScheduledActionProcessor(TENANT, scheduled_action_repo, entity_store, executor)
        for _ in range(2)
    ]

    summaries = await asyncio.gather(*(run.process_due() for run in runs))

    assert len(webhook.calls) == 1
    assert sorted((s.executed, s.skipped) for s in summaries) == [(0, 1), (1, 0)]
    assert scheduled_action_repo.actions[scheduled.id].status == ScheduledActionStatus.EXECUTED


async def test_claimed_action_is_not_picked_up_again(processor, scheduled_action_repo) -> None:
    scheduled = await _schedule(scheduled_action_repo)
    assert await scheduled_action_repo.claim(scheduled.id, TENANT) is True

    summary = await processor.process_due()

    assert summary.processed == 0
    with pytest.raises(InvalidExecutionStateException):
        await processor.cancel(scheduled.id, "too late")


async def test_unrecordable_failure_does_not_stop_batch(
    scheduled_action_repo, entity_store, action_executor
) -> None:
    entity_store.add("project", {"id": "p1", "status": "open"})
    flaky_repo = AsyncMock(wraps=scheduled_action_repo)
    flaky_repo.mark_failed.side_effect = RuntimeError("current transaction is aborted")
    processor = ScheduledActionProcessor(TENANT, flaky_repo, entity_store, action_executor)
    await _schedule(scheduled_action_repo, config={}, due_in=-10)
    second = await _schedule(scheduled_action_repo, action_type="generate_report", due_in=-5)

    summary = await processor.process_due()

    assert summary.processed == 2
    assert summary.executed == 1
    assert summary.skipped == 1
    assert scheduled_action_repo.actions[second.id].status == ScheduledActionStatus.EXECUTED
