"""Resolves condition field paths against the evaluation context."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import EvaluationContext

_PREVIOUS_PREFIX = "previous."
_USER_PREFIX = "user."
_COMPUTED_PREFIX = "computed."


def get_nested_value(source: Mapping[str, Any] | None, path: str) -> Any:
    """Walk a dotted path through nested mappings. Missing segments yield None."""
    current: Any = source
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
        if current is None:
            return None
    return current


def get_field_value(path: str, context: EvaluationContext) -> Any:
    """Return the value a condition path refers to.

    ``previous.x`` reads the pre-transition entity, ``user.x`` the acting user,
    ``computed.x`` the derived fields. An unprefixed name is looked up in the
    computed fields first and then as a dotted path on the entity.
    """
    if path.startswith(_PREVIOUS_PREFIX):
        return get_nested_value(context.previous_entity, path[len(_PREVIOUS_PREFIX) :])
    if path.startswith(_USER_PREFIX):
        return get_nested_value(context.user, path[len(_USER_PREFIX) :])
    if path.startswith(_COMPUTED_PREFIX):
        return get_nested_value(context.computed, path[len(_COMPUTED_PREFIX) :])
    if context.computed.get(path) is not None:
        return context.computed[path]
    return get_nested_value(context.entity, path)
