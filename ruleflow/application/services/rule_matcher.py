"""Selects the rules a trigger applies to.

Pure filtering over a rule snapshot: input order (priority DESC, then
creation order) is preserved in every result.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ruleflow.domain.entities.workflow import (
    EventTrigger,
    StatusChangeTrigger,
    TimeElapsedTrigger,
    WorkflowRuleEntity,
)
from ruleflow.shared.utils.datetime import parse_datetime, utc_now


def elapsed_hours(since: Any, now: datetime | None = None) -> float | None:
    """Fractional hours since ``since``; None when it cannot be parsed."""
    parsed = parse_datetime(since)
    if parsed is None:
        return None
    return ((now or utc_now()) - parsed).total_seconds() / 3600


def whole_elapsed_hours(since: Any, now: datetime | None = None) -> int | None:
    hours = elapsed_hours(since, now)
    return math.floor(hours) if hours is not None else None


class RuleMatcher:
    """Filters one tenant's rules by activity, entity type and trigger predicate."""

    def __init__(self, rules: Sequence[WorkflowRuleEntity]) -> None:
        self._rules = tuple(rules)

    def active_rules(self) -> list[WorkflowRuleEntity]:
        return [rule for rule in self._rules if rule.is_active]

    def rules_for_entity_type(self, entity_type: str) -> list[WorkflowRuleEntity]:
        return [rule for rule in self.active_rules() if rule.applies_to(entity_type)]

    def find_by_id(self, rule_id: str) -> WorkflowRuleEntity | None:
        """Return the rule with ``rule_id`` whether or not it is active."""
        return next((rule for rule in self._rules if rule.id == rule_id), None)

    def match_status_change(
        self, entity_type: str, old_status: str, new_status: str
    ) -> list[WorkflowRuleEntity]:
        """Rules whose from/to sets admit the transition (an empty set admits anything)."""
        matched = []
        for rule in self.rules_for_entity_type(entity_type):
            trigger = rule.trigger
            if not isinstance(trigger, StatusChangeTrigger):
                continue
            if trigger.from_statuses and old_status not in trigger.from_statuses:
                continue
            if trigger.to_statuses and new_status not in trigger.to_statuses:
                continue
            matched.append(rule)
        return matched

    def match_event(self, entity_type: str, event_type: str) -> list[WorkflowRuleEntity]:
        return [
            rule
            for rule in self.rules_for_entity_type(entity_type)
            if isinstance(rule.trigger, EventTrigger) and rule.trigger.event_type == event_type
        ]

    def match_time_elapsed(
        self,
        entity_type: str,
        status: str,
        status_changed_at: Any,
        now: datetime | None = None,
    ) -> list[WorkflowRuleEntity]:
        """Rules whose status equals ``status`` and whose threshold has passed."""
        hours = elapsed_hours(status_changed_at, now)
        if hours is None:
            return []
        matched = []
        for rule in self.rules_for_entity_type(entity_type):
            trigger = rule.trigger
            if not isinstance(trigger, TimeElapsedTrigger) or trigger.status != status:
                continue
            if hours >= trigger.threshold_hours:
                matched.append(rule)
        return matched
