"""Action handlers: each kind's success and failure results."""

from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from ruleflow.application.dtos.workflow import ExecutionContext
from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.domain.entities.workflow import Action
from ruleflow.shared.enums import ActionType
from ruleflow.shared.utils.datetime import utc_now
from tests.fakes import TENANT


def _action(action_type: str, **config) -> Action:
    return Action.from_dict({"type": action_type, "config": config})


@pytest.fixture
def project(entity_store) -> dict:
    return entity_store.add(
        "project",
        {
            "id": "p1",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "status": "open",
            "ownerId": "owner-1",
            "coordinatorId": "coord-1",
            "assignedTo": "user-9",
        },
    )


@pytest.fixture
def context(project) -> ExecutionContext:
    return ExecutionContext(
        tenant_id=TENANT,
        rule_id="rule-1",
        entity_type="project",
        entity_id="p1",
        entity=project,
        trigger_data={"type": "manual"},
        computed={"daysSinceLastUpdate": 3},
        execution_id="exec-1",
        user={"id": "actor-1"},
    )


async def test_send_message_to_contact(action_executor, email_queue, context) -> None:
    action = _action(
        "send_message",
        to="contact",
        subject="Hello {firstName}",
        template="Quiet for {daysSince} days.\n<b>bye</b>",
    )

    result = await action_executor.execute_action(action, context)

    assert result.success is True
    assert result.result == {"channel": "email", "to": "ada@example.com", "subject": "Hello Ada"}
    sent = email_queue.sent[0]
    assert sent["body_text"] == "Quiet for 3 days.\n<b>bye</b>"
    assert sent["source_id"] == "rule-1"


async def test_send_message_without_recipient_fails(action_executor, context) -> None:
    result = await action_executor.execute_action(_action("send_message", to="assignee"), context)
    assert result.success is False
    assert result.error == "No recipient email address found"


async def test_send_message_without_queue_fails(entity_store, context) -> None:
    executor = ActionExecutor(entity_store)
    result = await executor.execute_action(_action("send_message", to="a@b.co"), context)
    assert result.error == "Email queue is not configured"


async def test_send_notification_resolves_assignee(entity_store, context) -> None:
    notifications = AsyncMock()
    executor = ActionExecutor(entity_store, notification_service=notifications)

    result = await executor.execute_action(
        _action("send_notification", to="assignee", title="Check {name}", priority="high"),
        context,
    )

    assert result.success is True
    kwargs = notifications.create_notification.await_args.kwargs
    assert kwargs["user_id"] == "user-9"
    assert kwargs["title"] == "Check Ada Lovelace"
    assert kwargs["priority"] == "high"


async def test_slack_notify_succeeds_even_when_store_fails(entity_store, context) -> None:
    store = AsyncMock()
    store.add_slack_notification.return_value = False
    executor = ActionExecutor(entity_store, pending_store=store)

    result = await executor.execute_action(
        _action("slack_notify", channel="#ops", message="x" * 150), context
    )

    assert result.success is True
    assert result.result["stored"] is False
    assert len(result.result["message"]) == 100


async def test_suggest_action_records_options(entity_store, context) -> None:
    store = AsyncMock()
    store.add_suggestion.return_value = True
    executor = ActionExecutor(entity_store, pending_store=store)

    result = await executor.execute_action(
        _action("suggest_action", message="Escalate {name}?", options=["yes", "no"]), context
    )

    assert result.result == {
        "message": "Escalate Ada Lovelace?",
        "options": ["yes", "no"],
        "stored": True,
    }


async def test_schedule_followup_creates_pending_action(
    action_executor, scheduled_action_repo, context
) -> None:
    action = Action.from_dict(
        {
            "type": "schedule_followup",
            "config": {
                "delayHours": 2,
                "action": {"type": "update_status", "config": {"newStatus": "stale"}},
                "cancelIf": [{"field": "status", "operator": "equals", "value": "done"}],
            },
        }
    )

    result = await action_executor.execute_action(action, context)

    assert result.success is True
    scheduled = next(iter(scheduled_action_repo.actions.values()))
    assert scheduled.id == result.result["scheduled_action_id"]
    assert scheduled.action_type == "update_status"
    assert scheduled.action_config == {"newStatus": "stale"}
    assert scheduled.execution_id == "exec-1"
    assert scheduled.cancel_if == [{"field": "status", "operator": "equals", "value": "done"}]
    delay = scheduled.scheduled_for - utc_now()
    assert timedelta(hours=1, minutes=59) < delay <= timedelta(hours=2)


async def test_update_status(action_executor, entity_store, context) -> None:
    result = await action_executor.execute_action(
        _action("update_status", newStatus="closed"), context
    )
    assert result.success is True
    assert entity_store.entities[("project", "p1")]["status"] == "closed"


async def test_update_status_requires_backing_table(action_executor, context) -> None:
    invoice_context = ExecutionContext(
        tenant_id=TENANT, rule_id="r", entity_type="invoice", entity_id="i1", entity={}
    )
    result = await action_executor.execute_action(
        _action("update_status", newStatus="closed"), invoice_context
    )
    assert result.success is False
    assert "invoice" in result.error


async def test_update_field_direct_column_and_metadata_path(
    action_executor, entity_store, context
) -> None:
    direct = await action_executor.execute_action(
        _action("update_field", field="priority", value="high for {firstName}"), context
    )
    nested = await action_executor.execute_action(
        _action("update_field", field="metadata.review.score", value=5), context
    )

    assert direct.result == {"field": "priority", "value": "high for Ada"}
    assert nested.success is True
    entity = entity_store.entities[("project", "p1")]
    assert entity["priority"] == "high for Ada"
    assert entity["metadata"] == {"review": {"score": 5}}


@pytest.mark.parametrize("field", ["", "drop table", "a.b-c"])
async def test_update_field_rejects_bad_names(action_executor, context, field) -> None:
    result = await action_executor.execute_action(_action("update_field", field=field), context)
    assert result.success is False


async def test_assign_to_role_and_round_robin(action_executor, entity_store, context) -> None:
    owner = await action_executor.execute_action(_action("assign_to", role="owner"), context)
    round_robin = await action_executor.execute_action(
        _action("assign_to", role="round_robin"), context
    )
    nobody = await action_executor.execute_action(_action("assign_to"), context)

    assert owner.result == {"assigned_to": "owner-1"}
    assert entity_store.entities[("project", "p1")]["assignedTo"] == "owner-1"
    assert round_robin.success is False
    assert nobody.error == "No assignee found"


async def test_create_task(entity_store, context) -> None:
    task_repo = AsyncMock()
    task_repo.create_task.return_value = "task-1"
    executor = ActionExecutor(entity_store, task_repo=task_repo)

    result = await executor.execute_action(
        _action("create_task", title="Call {firstName}", assignTo="coordinator", dueInDays=2),
        context,
    )

    assert result.result == {"task_id": "task-1", "title": "Call Ada"}
    kwargs = task_repo.create_task.await_args.kwargs
    assert kwargs["assigned_to"] == "coord-1"
    assert kwargs["project_id"] == "p1"
    assert kwargs["created_by"] == "actor-1"
    assert kwargs["due_date"] > utc_now() + timedelta(days=1)


async def test_webhook_success_and_error_status(entity_store, context) -> None:
    client = AsyncMock()
    client.send.side_effect = [204, 500]
    executor = ActionExecutor(entity_store, webhook_client=client)
    action = _action(
        "webhook", url="https://hooks.test/x", method="put", headers={"X-Key": 1}, includeEntity=True
    )

    ok = await executor.execute_action(action, context)
    failed = await executor.execute_action(action, context)

    assert ok.result == {"status": 204}
    assert failed.error == "Webhook returned 500"
    kwargs = client.send.await_args_list[0].kwargs
    assert kwargs["method"] == "PUT"
    assert kwargs["headers"] == {"Content-Type": "application/json", "X-Key": "1"}
    assert kwargs["payload"]["entity"]["id"] == "p1"
    assert kwargs["payload"]["triggerData"] == {"type": "manual"}


async def test_webhook_network_error_becomes_failed_result(entity_store, context) -> None:
    client = AsyncMock()
    client.send.side_effect = httpx.ConnectError("connection refused")
    executor = ActionExecutor(entity_store, webhook_client=client)

    result = await executor.execute_action(_action("webhook", url="https://down.test"), context)

    assert result.success is False
    assert result.error == "connection refused"


async def test_webhook_without_url_fails(action_executor, context) -> None:
    result = await action_executor.execute_action(_action("webhook"), context)
    assert result.error == "No webhook URL specified"


async def test_generate_report_is_acknowledged(action_executor, context) -> None:
    result = await action_executor.execute_action(
        _action("generate_report", reportType="weekly", recipients=["a@b.co"]), context
    )
    assert result.result == {"report_type": "weekly", "recipients": ["a@b.co"], "format": "pdf"}


async def test_failed_status_update_stops_remaining_actions(action_executor, context) -> None:
    actions = [
        _action("generate_report", reportType="x"),
        _action("update_status"),
        _action("update_status", newStatus="never"),
    ]

    results = await action_executor.execute_actions(actions, context)

    assert [r.success for r in results] == [True, False]
    assert results[1].action.type == ActionType.UPDATE_STATUS
