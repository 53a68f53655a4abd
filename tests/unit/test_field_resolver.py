"""Field path resolution for conditions."""

from ruleflow.application.dtos.workflow import EvaluationContext
from ruleflow.application.services.field_resolver import get_field_value, get_nested_value


def test_get_nested_value_walks_mappings() -> None:
    source = {"a": {"b": {"c": 3}}, "flat": 1}
    assert get_nested_value(source, "a.b.c") == 3
    assert get_nested_value(source, "flat") == 1
    assert get_nested_value(source, "a.x.c") is None
    assert get_nested_value(source, "flat.deeper") is None
    assert get_nested_value(None, "a") is None


def test_prefixes_select_the_source() -> None:
    context = EvaluationContext(
        entity={"status": "open", "hoursInStatus": 999},
        computed={"hoursInStatus": 5},
        previous_entity={"status": "draft"},
        user={"id": "u1"},
    )
    assert get_field_value("previous.status", context) == "draft"
    assert get_field_value("user.id", context) == "u1"
    assert get_field_value("computed.hoursInStatus", context) == 5
    assert get_field_value("status", context) == "open"


def test_unprefixed_name_prefers_computed_then_entity() -> None:
    context = EvaluationContext(
        entity={"hoursInStatus": 999, "isOverdue": True},
        computed={"hoursInStatus": 5, "isOverdue": None},
    )
    assert get_field_value("hoursInStatus", context) == 5
    assert get_field_value("isOverdue", context) is True


def test_missing_previous_entity_resolves_to_none() -> None:
    context = EvaluationContext(entity={"status": "open"})
    assert get_field_value("previous.status", context) is None
