"""Outbound email queue writer for the send_message action."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.shared.utils.serialization import to_jsonable


class EmailQueueRepository:
    """Implements IEmailQueue over the host email_queue table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def enqueue(
        self,
        tenant_id: str,
        *,
        to_address: str,
        subject: str,
        body_text: str,
        body_html: str,
        variables: dict[str, Any],
        source_id: str,
        priority: str = "normal",
    ) -> str | None:
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(
                    "INSERT INTO email_queue (tenant_id, to_address, subject, body_text, "
                    "body_html, template_id, variables, source, source_id, priority) "
                    "VALUES (:tenant_id, :to_address, :subject, :body_text, :body_html, NULL, "
                    "CAST(:variables AS jsonb), 'workflow', :source_id, :priority) "
                    "RETURNING id"
                ),
                {
                    "tenant_id": tenant_id,
                    "to_address": to_address,
                    "subject": subject,
                    "body_text": body_text,
                    "body_html": body_html,
                    "variables": json.dumps(to_jsonable(variables)),
                    "source_id": source_id,
                    "priority": priority,
                },
            )
            queued_id = result.scalar_one_or_none()
        return str(queued_id) if queued_id is not None else None
