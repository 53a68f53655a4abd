"""Task repository for the workflow create_task action (host tasks table)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class TaskRepository:
    """Task repository. Implements ITaskRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_task(
        self,
        tenant_id: str,
        *,
        title: str,
        description: str,
        priority: str,
        assigned_to: str | None,
        due_date: datetime | None,
        source_ref: str,
        project_id: str | None,
        created_by: str | None,
    ) -> str:
        """Insert a task with source_type 'workflow' and return its id."""
        async with self.db.begin_nested():
            result = await self.db.execute(
                text(
                    "INSERT INTO tasks (tenant_id, title, description, priority, assigned_to, "
                    "due_date, source_type, source_ref, project_id, created_by) "
                    "VALUES (:tenant_id, :title, :description, :priority, :assigned_to, "
                    ":due_date, 'workflow', :source_ref, :project_id, :created_by) "
                    "RETURNING id"
                ),
                {
                    "tenant_id": tenant_id,
                    "title": title,
                    "description": description,
                    "priority": priority,
                    "assigned_to": assigned_to,
                    "due_date": due_date,
                    "source_ref": source_ref,
                    "project_id": project_id,
                    "created_by": created_by,
                },
            )
            return str(result.scalar_one())
