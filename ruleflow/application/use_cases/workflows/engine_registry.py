"""Process-wide cache of each tenant's decoded rule set.

A snapshot is an immutable tuple. Reloading builds a new tuple and swaps it in
with a single assignment, so an engine evaluating the old snapshot never sees
a half-updated rule list.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import lru_cache
from typing import TYPE_CHECKING

from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ruleflow.domain.entities.workflow import WorkflowRuleEntity

logger = get_logger(__name__)

RuleSnapshot = tuple["WorkflowRuleEntity", ...]

_NEVER = datetime.max.replace(tzinfo=UTC)


def evaluation_order(rule: WorkflowRuleEntity) -> tuple[int, datetime, str]:
    """Sort key: highest priority first, then oldest, then id."""
    return (-rule.priority, ensure_utc(rule.created_at) or _NEVER, rule.id)


class EngineRegistry:
    """Maps tenant id to that tenant's current rule snapshot."""

    def __init__(self) -> None:
        self._snapshots: dict[str, RuleSnapshot] = {}

    def get(self, tenant_id: str) -> RuleSnapshot | None:
        """Return the loaded snapshot, or None when the tenant has not been loaded."""
        return self._snapshots.get(tenant_id)

    def replace(self, tenant_id: str, rules: Iterable[WorkflowRuleEntity]) -> RuleSnapshot:
        snapshot = tuple(sorted(rules, key=evaluation_order))
        self._snapshots[tenant_id] = snapshot
        logger.info("Loaded %d workflow rules for tenant %s", len(snapshot), tenant_id)
        return snapshot

    def invalidate(self, tenant_id: str) -> None:
        """Drop the tenant's snapshot; the next engine call reloads it."""
        self._snapshots.pop(tenant_id, None)

    def clear(self) -> None:
        self._snapshots.clear()

    def loaded_tenants(self) -> list[str]:
        return list(self._snapshots)


@lru_cache
def get_engine_registry() -> EngineRegistry:
    """Return the process-wide registry (cached)."""
    return EngineRegistry()
