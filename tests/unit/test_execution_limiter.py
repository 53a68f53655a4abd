"""Cooldown and max-execution limits."""

from datetime import UTC, datetime, timedelta

from ruleflow.application.dtos.workflow import EntityWorkflowStateResult
from ruleflow.application.services.execution_limiter import ExecutionLimiter, blocked_reason
from tests.fakes import TENANT, FakeStateRepository, make_rule

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _state(count: int, hours_ago: float) -> EntityWorkflowStateResult:
    return EntityWorkflowStateResult(
        tenant_id=TENANT,
        rule_id="rule-1",
        entity_type="project",
        entity_id="p1",
        execution_count=count,
        last_execution_at=NOW - timedelta(hours=hours_ago),
        last_execution_id="e1",
    )


def test_no_state_is_never_blocked() -> None:
    rule = make_rule(cooldown_hours=24, max_executions=1)
    assert blocked_reason(rule, None, NOW) is None


def test_max_executions_blocks() -> None:
    rule = make_rule(max_executions=2)
    assert blocked_reason(rule, _state(1, 100), NOW) is None
    assert "max executions" in blocked_reason(rule, _state(2, 100), NOW)


def test_cooldown_blocks_until_elapsed() -> None:
    rule = make_rule(cooldown_hours=24)
    assert "cooldown" in blocked_reason(rule, _state(1, 23), NOW)
    assert blocked_reason(rule, _state(1, 24), NOW) is None


def test_non_positive_limits_mean_no_limit() -> None:
    rule = make_rule(cooldown_hours=-1, max_executions=0)
    assert blocked_reason(rule, _state(50, 0), NOW) is None


async def test_record_execution_guards_limits() -> None:
    repo = FakeStateRepository()
    limiter = ExecutionLimiter(repo)
    rule = make_rule(max_executions=1)

    assert await limiter.can_execute(TENANT, rule, "project", "p1") is True
    assert await limiter.record_execution(TENANT, rule, "project", "p1", "e1") is True
    assert await limiter.can_execute(TENANT, rule, "project", "p1") is False
    assert await limiter.record_execution(TENANT, rule, "project", "p1", "e2") is False
    assert await limiter.record_execution(
        TENANT, rule, "project", "p1", "e3", enforce_limits=False
    ) is True

    state = await limiter.get_state(TENANT, rule, "project", "p1")
    assert state.execution_count == 2
    assert state.last_execution_id == "e3"
