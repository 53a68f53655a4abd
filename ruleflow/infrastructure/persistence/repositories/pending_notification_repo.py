"""Slack notifications and suggestions awaiting delivery by another worker.

Writes are best-effort: the host tables may not exist in every deployment,
so a database error is logged and reported as "not stored".
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.serialization import to_jsonable

logger = get_logger(__name__)


class PendingNotificationRepository:
    """Implements IPendingNotificationStore."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _insert(self, table: str, statement: str, params: dict[str, Any]) -> bool:
        try:
            async with self.db.begin_nested():
                await self.db.execute(text(statement), params)
        except SQLAlchemyError:
            logger.warning(
                "Could not store workflow entry in %s (tenant_id=%s, rule_id=%s)",
                table,
                params.get("tenant_id"),
                params.get("rule_id"),
                exc_info=True,
            )
            return False
        return True

    async def add_slack_notification(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        channel: str,
        message: str,
        mention: str | None,
    ) -> bool:
        return await self._insert(
            "workflow_slack_notifications",
            "INSERT INTO workflow_slack_notifications (tenant_id, channel, message, mention, "
            "rule_id, entity_type, entity_id, status) "
            "VALUES (:tenant_id, :channel, :message, :mention, :rule_id, :entity_type, "
            ":entity_id, 'pending') ON CONFLICT DO NOTHING",
            {
                "tenant_id": tenant_id,
                "channel": channel,
                "message": message,
                "mention": mention,
                "rule_id": rule_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )

    async def add_suggestion(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        channel: str,
        message: str,
        options: list[Any],
    ) -> bool:
        return await self._insert(
            "workflow_suggestions",
            "INSERT INTO workflow_suggestions (tenant_id, rule_id, entity_type, entity_id, "
            "channel, message, options, status) "
            "VALUES (:tenant_id, :rule_id, :entity_type, :entity_id, :channel, :message, "
            "CAST(:options AS jsonb), 'pending') ON CONFLICT DO NOTHING",
            {
                "tenant_id": tenant_id,
                "rule_id": rule_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "channel": channel,
                "message": message,
                "options": json.dumps(to_jsonable(options)),
            },
        )
