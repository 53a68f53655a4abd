"""Host entity store: reads and updates the entities rules act on.

Entity types map to host tables through a fixed allow-list; identifiers
never come from rule JSON except for update_field column names, which are
validated before they reach this module. Each statement runs in a
savepoint so a failing update does not abort the caller's transaction.
"""

from __future__ import annotations

import json
import re
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.serialization import to_jsonable

logger = get_logger(__name__)

ENTITY_TABLES: dict[str, str] = {
    "project": "projects",
    "task": "tasks",
    "order": "orders",
    "creator": "creators",
    "customer": "customers",
    "thread": "inbox_threads",
    "contact": "inbox_contacts",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def row_to_entity(row: dict[str, Any]) -> dict[str, Any]:
    """Return the row with camelCase aliases added for snake_case columns.

    Rules and templates are written against camelCase field names
    (firstName, statusChangedAt); host tables use snake_case columns.
    """
    entity = dict(row)
    for key, value in row.items():
        alias = _camel(key)
        if alias != key and alias not in entity:
            entity[alias] = value
    return entity


def set_path(document: dict[str, Any], path: list[str], value: Any) -> dict[str, Any]:
    """Return a copy of ``document`` with ``value`` written at ``path``.

    Missing or non-object intermediate keys are replaced by objects.
    """
    root = dict(document)
    node = root
    for key in path[:-1]:
        child = node.get(key)
        child = dict(child) if isinstance(child, dict) else {}
        node[key] = child
        node = child
    node[path[-1]] = value
    return root


class EntityRepository:
    """Implements IEntityStore over the host tables in ENTITY_TABLES."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def supports(self, entity_type: str) -> bool:
        return entity_type in ENTITY_TABLES

    def _table(self, entity_type: str) -> str:
        table = ENTITY_TABLES.get(entity_type)
        if table is None:
            raise ValueError(f"No backing table for entity type '{entity_type}'")
        return table

    async def fetch(self, tenant_id: str, entity_type: str, entity_id: str) -> dict[str, Any]:
        table = ENTITY_TABLES.get(entity_type)
        if table is None:
            return {"id": entity_id}
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(f"SELECT * FROM {table} WHERE id = :id AND tenant_id = :tenant_id"),
                {"id": entity_id, "tenant_id": tenant_id},
            )
            row = result.mappings().one_or_none()
        if row is None:
            logger.debug("Entity %s:%s not found (tenant_id=%s)", entity_type, entity_id, tenant_id)
            return {"id": entity_id}
        return row_to_entity(dict(row))

    async def _update(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        assignments: str,
        params: dict[str, Any],
    ) -> None:
        table = self._table(entity_type)
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(
                    f"UPDATE {table} SET {assignments}, updated_at = NOW() "
                    "WHERE id = :id AND tenant_id = :tenant_id"
                ),
                {**params, "id": entity_id, "tenant_id": tenant_id},
            )
        if result.rowcount == 0:
            logger.warning(
                "Update of %s:%s matched no rows (tenant_id=%s)", entity_type, entity_id, tenant_id
            )

    async def update_status(
        self, tenant_id: str, entity_type: str, entity_id: str, status: str
    ) -> None:
        await self._update(tenant_id, entity_type, entity_id, "status = :status", {"status": status})

    async def update_column(
        self, tenant_id: str, entity_type: str, entity_id: str, column: str, value: Any
    ) -> None:
        if not _IDENTIFIER.match(column):
            raise ValueError(f"Invalid field name: {column}")
        if isinstance(value, (dict, list)):
            assignment = f'"{column}" = CAST(:value AS jsonb)'
            value = json.dumps(to_jsonable(value))
        else:
            assignment = f'"{column}" = :value'
        await self._update(tenant_id, entity_type, entity_id, assignment, {"value": value})

    async def merge_metadata(
        self, tenant_id: str, entity_type: str, entity_id: str, path: list[str], value: Any
    ) -> None:
        """Write ``value`` at ``path`` inside the metadata JSON column.

        Read-modify-write under a row lock (SELECT ... FOR UPDATE).
        """
        table = self._table(entity_type)
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(
                    f"SELECT metadata FROM {table} "
                    "WHERE id = :id AND tenant_id = :tenant_id FOR UPDATE"
                ),
                {"id": entity_id, "tenant_id": tenant_id},
            )
            row = result.one_or_none()
        if row is None:
            logger.warning(
                "Metadata update of %s:%s matched no rows (tenant_id=%s)",
                entity_type,
                entity_id,
                tenant_id,
            )
            return
        current = row[0] if isinstance(row[0], dict) else {}
        metadata = set_path(current, path, to_jsonable(value))
        await self._update(
            tenant_id,
            entity_type,
            entity_id,
            "metadata = CAST(:metadata AS jsonb)",
            {"metadata": json.dumps(metadata)},
        )

    async def assign(
        self, tenant_id: str, entity_type: str, entity_id: str, assignee_id: str
    ) -> None:
        await self._update(
            tenant_id,
            entity_type,
            entity_id,
            "assigned_to = :assignee_id, assigned_at = NOW()",
            {"assignee_id": assignee_id},
        )

    async def list_in_statuses(
        self, tenant_id: str, entity_type: str, statuses: list[str], limit: int
    ) -> list[dict[str, Any]]:
        """Entities of ``entity_type`` currently in one of ``statuses``, oldest update first.

        Feeds the time-elapsed sweep; an empty ``statuses`` returns nothing.
        """
        if not statuses:
            return []
        table = self._table(entity_type)
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(
                    f"SELECT * FROM {table} "
                    "WHERE tenant_id = :tenant_id AND status = ANY(:statuses) "
                    "ORDER BY updated_at ASC LIMIT :limit"
                ),
                {"tenant_id": tenant_id, "statuses": list(statuses), "limit": limit},
            )
            rows = result.mappings().all()
        return [row_to_entity(dict(row)) for row in rows]
