"""Application services: condition evaluation, computed fields, matching, limits, actions."""

from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.application.services.computed_fields import compute_fields
from ruleflow.application.services.condition_evaluator import (
    evaluate_condition,
    evaluate_conditions,
)
from ruleflow.application.services.execution_limiter import ExecutionLimiter, blocked_reason
from ruleflow.application.services.field_resolver import get_field_value, get_nested_value
from ruleflow.application.services.rule_matcher import RuleMatcher
from ruleflow.application.services.template_interpolator import TemplateInterpolator

__all__ = [
    "ActionExecutor",
    "ExecutionLimiter",
    "RuleMatcher",
    "TemplateInterpolator",
    "blocked_reason",
    "compute_fields",
    "evaluate_condition",
    "evaluate_conditions",
    "get_field_value",
    "get_nested_value",
]
