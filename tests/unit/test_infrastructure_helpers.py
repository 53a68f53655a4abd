"""Pure helpers of the SQL layer: row mapping, metadata paths, rule decoding, JSON safety."""

import json
from datetime import UTC, date, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx

from ruleflow.domain.entities.workflow import ManualTrigger, StatusChangeTrigger
from ruleflow.infrastructure.persistence.repositories.entity_repo import (
    ENTITY_TABLES,
    EntityRepository,
    row_to_entity,
    set_path,
)
from ruleflow.infrastructure.persistence.repositories.scheduled_action_repo import (
    ScheduledActionRepository,
)
from ruleflow.infrastructure.persistence.repositories.workflow_repo import _rule_to_entity
from ruleflow.infrastructure.services.webhook_client import HttpxWebhookClient
from ruleflow.infrastructure.services.workflow_template_renderer import WorkflowTemplateRenderer
from ruleflow.shared.enums import ExecutionResult
from ruleflow.shared.utils.serialization import to_jsonable


def test_row_to_entity_adds_camel_case_aliases() -> None:
    entity = row_to_entity({"id": "p1", "first_name": "Ada", "status_changed_at": 1, "name": "x"})
    assert entity["firstName"] == "Ada"
    assert entity["statusChangedAt"] == 1
    assert entity["first_name"] == "Ada"
    assert entity["name"] == "x"


def test_row_to_entity_keeps_existing_camel_column() -> None:
    entity = row_to_entity({"owner_id": "snake", "ownerId": "camel"})
    assert entity["ownerId"] == "camel"


def test_set_path_creates_and_replaces_intermediates() -> None:
    original = {"review": "pending", "keep": 1}
    updated = set_path(original, ["review", "score"], 5)
    assert updated == {"review": {"score": 5}, "keep": 1}
    assert original == {"review": "pending", "keep": 1}
    assert set_path({}, ["a", "b", "c"], True) == {"a": {"b": {"c": True}}}


def test_entity_tables_allow_list() -> None:
    repo = EntityRepository(db=None)
    assert ENTITY_TABLES["thread"] == "inbox_threads"
    assert repo.supports("project")
    assert not repo.supports("invoice")


def _rule_row(**overrides) -> SimpleNamespace:
    values = {
        "id": "r1",
        "tenant_id": "t1",
        "name": "Rule",
        "description": None,
        "is_active": True,
        "priority": 10,
        "requires_approval": False,
        "approver_role": None,
        "created_at": datetime(2025, 1, 1, tzinfo=UTC),
        "trigger_type": "status_change",
        "trigger_config": {"to": ["done"]},
        "conditions": [],
        "actions": [{"type": "update_status", "config": {"newStatus": "closed"}}],
        "entity_types": ["project"],
        "cooldown_hours": None,
        "max_executions": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_rule_row_decodes() -> None:
    rule = _rule_to_entity(_rule_row())
    assert isinstance(rule.trigger, StatusChangeTrigger)
    assert rule.is_active
    assert rule.config_error is None


def test_malformed_rule_row_becomes_inactive_placeholder() -> None:
    rule = _rule_to_entity(_rule_row(actions=[{"type": "teleport"}]))
    assert rule.is_active is False
    assert rule.trigger == ManualTrigger()
    assert "teleport" in rule.config_error


def test_to_jsonable() -> None:
    value = {
        "at": datetime(2025, 1, 2, 3, 4, tzinfo=UTC),
        "day": date(2025, 1, 2),
        "amount": Decimal("1.5"),
        "result": ExecutionResult.SUCCESS,
        "tags": ("a", "b"),
        "other": object,
        1: None,
    }
    converted = to_jsonable(value)
    assert converted["at"] == "2025-01-02T03:04:00+00:00"
    assert converted["day"] == "2025-01-02"
    assert converted["amount"] == 1.5
    assert converted["result"] == "success"
    assert converted["tags"] == ["a", "b"]
    assert converted["1"] is None
    json.dumps(converted)


def test_renderer_escapes_and_breaks_lines() -> None:
    html = WorkflowTemplateRenderer().render_html("Hi <Ada>\nSee you & bye")
    assert html == "Hi &lt;Ada&gt;<br>\nSee you &amp; bye"
    assert WorkflowTemplateRenderer().render_html("") == ""


async def test_webhook_client_sends_json() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        status = await HttpxWebhookClient(client).send(
            "https://hooks.test/in",
            method="POST",
            headers={"X-Key": "k"},
            payload={"at": datetime(2025, 1, 1, tzinfo=UTC)},
        )

    assert status == 202
    assert seen[0].headers["X-Key"] == "k"
    assert json.loads(seen[0].content) == {"at": "2025-01-01T00:00:00+00:00"}


async def test_scheduled_action_claim_runs_in_savepoint() -> None:
    result = MagicMock()
    result.scalar_one_or_none.return_value = "sa-1"
    db = MagicMock()
    db.execute = AsyncMock(return_value=result)
    repo = ScheduledActionRepository(db)

    assert await repo.claim("sa-1", "tenant-1") is True

    db.begin_nested.assert_called_once_with()
    db.begin_nested.return_value.__aenter__.assert_awaited_once()
    db.begin_nested.return_value.__aexit__.assert_awaited_once()
    db.execute.assert_awaited_once()
