"""Derived fields evaluated against a fixed clock."""

from datetime import UTC, datetime

from ruleflow.application.dtos.workflow import EntityWorkflowStateResult
from ruleflow.application.services.computed_fields import (
    compute_days_since,
    compute_fields,
    compute_reminders_sent,
    is_overdue,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def test_compute_fields_for_full_entity() -> None:
    entity = {
        "createdAt": "2025-03-01T12:00:00Z",
        "updated_at": datetime(2025, 3, 8, 11, 0, tzinfo=UTC),
        "statusChangedAt": "2025-03-10T09:30:00+00:00",
        "dueDate": "2025-03-07",
        "status": "open",
    }

    fields = compute_fields(entity, NOW)

    assert fields == {
        "daysSinceCreated": 9,
        "daysSinceUpdated": 2,
        "daysSinceLastUpdate": 2,
        "hoursInStatus": 2,
        "daysSinceDue": 3,
        "isOverdue": True,
    }


def test_compute_fields_for_bare_entity() -> None:
    fields = compute_fields({"id": "x"}, NOW)
    assert fields["daysSinceCreated"] is None
    assert fields["daysSinceUpdated"] is None
    assert fields["daysSinceLastUpdate"] == 0
    assert fields["hoursInStatus"] == 0
    assert fields["daysSinceDue"] is None
    assert fields["isOverdue"] is False


def test_hours_in_status_falls_back_to_updated_at() -> None:
    fields = compute_fields({"updatedAt": "2025-03-10T06:00:00Z"}, NOW)
    assert fields["hoursInStatus"] == 6


def test_future_due_date_is_negative_and_not_overdue() -> None:
    fields = compute_fields({"due_date": "2025-03-15T12:00:00Z"}, NOW)
    assert fields["daysSinceDue"] == -5
    assert fields["isOverdue"] is False


def test_closed_entities_are_never_overdue() -> None:
    entity = {"dueDate": "2025-01-01", "status": "Completed"}
    assert is_overdue(entity, NOW) is False


def test_compute_days_since_unparsable() -> None:
    assert compute_days_since("not a date", NOW) is None
    assert compute_days_since(None, NOW) is None


def test_reminders_sent_counts_prior_firings() -> None:
    state = EntityWorkflowStateResult(
        tenant_id="t",
        rule_id="r",
        entity_type="project",
        entity_id="p",
        execution_count=3,
        last_execution_at=NOW,
        last_execution_id="e",
    )
    assert compute_reminders_sent(state) == 3
    assert compute_reminders_sent(None) == 0
    assert compute_reminders_sent({"remindersSent": 2}) == 2


def test_day_counts_agree_with_compute_days_since() -> None:
    entity = {"createdAt": "2025-03-01T12:00:00Z", "dueDate": "not a date"}
    fields = compute_fields(entity, NOW)
    assert fields["daysSinceCreated"] == compute_days_since(entity["createdAt"], NOW) == 9
    assert fields["daysSinceDue"] is None
