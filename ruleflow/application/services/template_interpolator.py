"""Substitutes ``{token}`` placeholders in action text.

Tokens are word characters with optional dotted segments (``{customer.name}``).
A small set of shortcuts maps to common entity fields; anything else is a
dotted lookup on the entity. A token that resolves to nothing is left in the
text verbatim so a broken template is visible rather than silently blank.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ruleflow.application.services.field_resolver import get_nested_value
from ruleflow.shared.utils.datetime import parse_datetime

if TYPE_CHECKING:
    from ruleflow.application.dtos.workflow import ExecutionContext

TOKEN_PATTERN = re.compile(r"\{(\w+(?:\.\w+)*)\}")


def format_due_date(value: Any) -> str:
    """Format a date as "Jan 5, 2025"; empty string when absent."""
    parsed = parse_datetime(value)
    if parsed is None:
        return ""
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def _full_name(entity: dict[str, Any]) -> Any:
    return entity.get("name") or entity.get("title") or entity.get("displayName")


def _name_parts(entity: dict[str, Any]) -> list[str]:
    name = entity.get("name")
    return name.split() if isinstance(name, str) else []


def _first_name(entity: dict[str, Any]) -> str:
    parts = _name_parts(entity)
    return parts[0] if parts else ""


def _last_name(entity: dict[str, Any]) -> str:
    parts = _name_parts(entity)
    return parts[-1] if len(parts) > 1 else ""


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


_SHORTCUTS: dict[str, Callable[[ExecutionContext], Any]] = {
    "firstName": lambda ctx: _first_name(ctx.entity),
    "lastName": lambda ctx: _last_name(ctx.entity),
    "name": lambda ctx: _full_name(ctx.entity),
    "email": lambda ctx: ctx.entity.get("email"),
    "phone": lambda ctx: ctx.entity.get("phone"),
    "entityTitle": lambda ctx: ctx.entity.get("title") or ctx.entity.get("name"),
    "entityStatus": lambda ctx: ctx.entity.get("status"),
    "dueDate": lambda ctx: format_due_date(ctx.entity.get("dueDate") or ctx.entity.get("due_date")),
    "daysSince": lambda ctx: ctx.computed.get("daysSinceLastUpdate"),
    "hoursInStatus": lambda ctx: ctx.computed.get("hoursInStatus"),
    "projectTitle": lambda ctx: ctx.entity.get("projectTitle") or ctx.entity.get("title"),
}


class TemplateInterpolator:
    """Resolves template tokens for one execution context."""

    def __init__(self, admin_base_url: str = "") -> None:
        self._admin_base_url = admin_base_url.rstrip("/")

    def resolve_token(self, token: str, context: ExecutionContext) -> Any:
        """Return the value for ``token`` or None when it does not resolve."""
        if token == "adminUrl":
            return f"{self._admin_base_url}/{context.entity_type}s/{context.entity_id}"
        shortcut = _SHORTCUTS.get(token)
        if shortcut is not None:
            return shortcut(context)
        return get_nested_value(context.entity, token)

    def interpolate(self, template: str, context: ExecutionContext) -> str:
        """Replace every resolvable ``{token}`` in ``template``."""
        if not template:
            return template

        def _replace(match: re.Match[str]) -> str:
            value = self.resolve_token(match.group(1), context)
            if value is None:
                return match.group(0)
            return _stringify(value)

        return TOKEN_PATTERN.sub(_replace, template)
