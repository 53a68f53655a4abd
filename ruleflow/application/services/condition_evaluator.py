"""Evaluates rule conditions against an entity, its computed fields and context.

Operators never raise: a malformed pattern, a non-array literal for ``in`` or
values that cannot be compared all make the condition false (or, for the
ordering operators, compare as equal). Conditions are AND-ed, but every
condition is evaluated so the execution record shows each outcome.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from ruleflow.application.dtos.workflow import ConditionResult, ConditionsEvaluation
from ruleflow.application.services.field_resolver import get_field_value
from ruleflow.shared.enums import ConditionOperator
from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import parse_datetime, utc_now

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import EvaluationContext
    from ruleflow.domain.entities.workflow import Condition

logger = get_logger(__name__)

NOW_SENTINEL = "now"
NOW_TOLERANCE_SECONDS = 60

_NUMBER_PREFIX = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")
_TRUTHY_STRINGS = frozenset({"true", "yes", "1"})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float | None:
    """Permissive numeric coercion: numbers as-is, strings by their numeric prefix ("12px" -> 12)."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if match:
            return float(match.group(0))
    return None


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return bool(value)


def to_datetime(value: Any) -> datetime | None:
    """Date coercion for comparisons. Bare numbers are left to numeric comparison."""
    if isinstance(value, (datetime, date)):
        return parse_datetime(value)
    if isinstance(value, str) and value:
        if value.strip().lower() == NOW_SENTINEL:
            return utc_now()
        return parse_datetime(value)
    return None


def values_equal(actual: Any, expected: Any) -> bool:
    """Equality as rule authors expect it.

    Strings compare case-insensitively, numeric literals coerce the actual
    value, boolean literals accept "true"/"yes"/"1", and "now" matches a
    timestamp within a minute of the current time.
    """
    if expected is None:
        return actual is None
    if actual is None:
        return False
    if isinstance(expected, bool):
        return to_bool(actual) == expected
    if _is_number(expected):
        actual_number = to_number(actual)
        return actual_number is not None and actual_number == float(expected)
    if isinstance(expected, str):
        if expected.strip().lower() == NOW_SENTINEL:
            actual_date = to_datetime(actual)
            if actual_date is None:
                return False
            return abs((utc_now() - actual_date).total_seconds()) <= NOW_TOLERANCE_SECONDS
        if isinstance(actual, str):
            return actual.lower() == expected.lower()
        if _is_number(actual):
            expected_number = to_number(expected)
            return expected_number is not None and expected_number == float(actual)
        if isinstance(actual, bool):
            return str(actual).lower() == expected.lower()
        return False
    return actual == expected


def compare_values(actual: Any, expected: Any) -> float:
    """Signed difference actual - expected; 0 when the values are not comparable.

    Dates (including the "now" sentinel) are tried first, then numbers.
    """
    actual_date = to_datetime(actual)
    expected_date = to_datetime(expected)
    if actual_date is not None and expected_date is not None:
        return (actual_date - expected_date).total_seconds()
    actual_number = to_number(actual)
    expected_number = to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number - expected_number
    return 0


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple)):
        return False
    return any(values_equal(actual, item) for item in expected)


def _not_in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple)):
        return False
    return not _in(actual, expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return expected is not None and str(expected).lower() in actual.lower()
    if isinstance(actual, Sequence):
        return any(values_equal(item, expected) for item in actual)
    return False


def _starts_with(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    return actual.lower().startswith(expected.lower())


def _ends_with(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    return actual.lower().endswith(expected.lower())


def _matches(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    try:
        return re.search(expected, actual, re.IGNORECASE) is not None
    except re.error:
        logger.debug("Invalid pattern in matches condition: %s", expected)
        return False


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: values_equal,
    ConditionOperator.NOT_EQUALS: lambda a, e: not values_equal(a, e),
    ConditionOperator.GREATER_THAN: lambda a, e: compare_values(a, e) > 0,
    ConditionOperator.LESS_THAN: lambda a, e: compare_values(a, e) < 0,
    ConditionOperator.GREATER_THAN_OR_EQUAL: lambda a, e: compare_values(a, e) >= 0,
    ConditionOperator.LESS_THAN_OR_EQUAL: lambda a, e: compare_values(a, e) <= 0,
    ConditionOperator.IN: _in,
    ConditionOperator.NOT_IN: _not_in,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.STARTS_WITH: _starts_with,
    ConditionOperator.ENDS_WITH: _ends_with,
    ConditionOperator.EXISTS: lambda a, _e: a is not None,
    ConditionOperator.NOT_EXISTS: lambda a, _e: a is None,
    ConditionOperator.MATCHES: _matches,
}


def apply_operator(operator: str, actual: Any, expected: Any) -> bool:
    """Apply a named operator. Unknown operators evaluate to False."""
    handler = _OPERATORS.get(operator)
    if handler is None:
        logger.warning("Unknown condition operator: %s", operator)
        return False
    return handler(actual, expected)


def evaluate_condition(condition: Condition, context: EvaluationContext) -> ConditionResult:
    actual = get_field_value(condition.field, context)
    return ConditionResult(
        field=condition.field,
        operator=condition.operator,
        expected=condition.value,
        actual=actual,
        passed=apply_operator(condition.operator, actual, condition.value),
    )


def evaluate_conditions(
    conditions: Sequence[Condition], context: EvaluationContext
) -> ConditionsEvaluation:
    """AND all conditions; an empty list passes."""
    results = [evaluate_condition(condition, context) for condition in conditions]
    return ConditionsEvaluation(passed=all(r.passed for r in results), results=results)
