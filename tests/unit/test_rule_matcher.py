"""Rule selection by entity type and trigger predicate."""

from datetime import UTC, datetime, timedelta

from ruleflow.application.services.rule_matcher import (
    RuleMatcher,
    elapsed_hours,
    whole_elapsed_hours,
)
from ruleflow.domain.entities.workflow import WorkflowRuleEntity
from tests.fakes import TENANT, make_rule

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _rules() -> list[WorkflowRuleEntity]:
    return [
        make_rule("any-to-done", trigger_config={"to": ["done"]}, priority=50),
        make_rule("draft-to-any", trigger_config={"from": ["draft"]}, entity_types=["project"]),
        make_rule("inactive", trigger_config={}, is_active=False),
        make_rule("tasks-only", trigger_config={}, entity_types=["task"]),
        make_rule("paid", trigger_type="event", trigger_config={"eventType": "order.paid"}),
        make_rule(
            "stale-review",
            trigger_type="time_elapsed",
            trigger_config={"status": "review", "hours": 12, "days": 1},
        ),
        make_rule("manual", trigger_type="manual"),
    ]


def test_match_status_change_keeps_input_order() -> None:
    matcher = RuleMatcher(_rules())
    matched = matcher.match_status_change("project", "draft", "done")
    assert [r.id for r in matched] == ["any-to-done", "draft-to-any"]


def test_match_status_change_respects_from_and_entity_type() -> None:
    matcher = RuleMatcher(_rules())
    assert [r.id for r in matcher.match_status_change("project", "review", "open")] == []
    assert [r.id for r in matcher.match_status_change("task", "x", "y")] == ["tasks-only"]


def test_match_event_by_name() -> None:
    matcher = RuleMatcher(_rules())
    assert [r.id for r in matcher.match_event("order", "order.paid")] == ["paid"]
    assert matcher.match_event("order", "order.refunded") == []


def test_match_time_elapsed_threshold() -> None:
    matcher = RuleMatcher(_rules())
    assert matcher.match_time_elapsed("project", "review", NOW - timedelta(hours=35), NOW) == []
    matched = matcher.match_time_elapsed("project", "review", NOW - timedelta(hours=36), NOW)
    assert [r.id for r in matched] == ["stale-review"]
    assert matcher.match_time_elapsed("project", "open", NOW - timedelta(days=9), NOW) == []
    assert matcher.match_time_elapsed("project", "review", "garbage", NOW) == []


def test_find_by_id_includes_inactive_rules() -> None:
    matcher = RuleMatcher(_rules())
    assert matcher.find_by_id("inactive").is_active is False
    assert matcher.find_by_id("nope") is None
    assert "inactive" not in [r.id for r in matcher.active_rules()]


def test_rules_for_entity_type() -> None:
    matcher = RuleMatcher([make_rule("a", entity_types=["order"]), make_rule("b")])
    assert [r.id for r in matcher.rules_for_entity_type("order")] == ["a", "b"]
    assert [r.id for r in matcher.rules_for_entity_type("project")] == ["b"]
    assert all(r.tenant_id == TENANT for r in matcher.active_rules())


def test_elapsed_hours_helpers() -> None:
    since = (NOW - timedelta(hours=5, minutes=59)).isoformat()
    assert elapsed_hours(since, NOW) > 5.9
    assert whole_elapsed_hours(since, NOW) == 5
    assert whole_elapsed_hours(None, NOW) is None
