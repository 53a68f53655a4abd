"""In-app notification writer for the send_notification action."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class NotificationRepository:
    """Implements INotificationService over the host notifications table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_notification(
        self,
        tenant_id: str,
        *,
        user_id: str,
        title: str,
        message: str,
        priority: str,
        source_id: str,
        entity_type: str,
        entity_id: str,
    ) -> None:
        async with self.db.begin_nested():
            await self.db.execute(
                text(
                    "INSERT INTO notifications (tenant_id, user_id, title, message, priority, "
                    "source, source_id, entity_type, entity_id) "
                    "VALUES (:tenant_id, :user_id, :title, :message, :priority, 'workflow', "
                    ":source_id, :entity_type, :entity_id)"
                ),
                {
                    "tenant_id": tenant_id,
                    "user_id": user_id,
                    "title": title,
                    "message": message,
                    "priority": priority,
                    "source_id": source_id,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                },
            )
