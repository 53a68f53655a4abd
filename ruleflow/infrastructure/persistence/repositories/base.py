"""Base repository: tenant-scoped lookup, listing and insert."""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.infrastructure.persistence.database import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository for multi-tenant models (rows carry ``id`` and ``tenant_id``).

    Every read is filtered by tenant; there is deliberately no unscoped
    get_by_id. Subclasses map rows to application DTOs.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    def _tenant_query(self, tenant_id: str) -> Select[tuple[ModelType]]:
        model: Any = self.model
        return select(self.model).where(model.tenant_id == tenant_id)

    async def _get_row(self, entity_id: str, tenant_id: str) -> ModelType | None:
        """Return a single record by primary key within the tenant, or None."""
        model: Any = self.model
        result = await self.db.execute(self._tenant_query(tenant_id).where(model.id == entity_id))
        return result.scalar_one_or_none()

    async def _list_rows(
        self, query: Select[tuple[ModelType]], skip: int = 0, limit: int = 100
    ) -> list[ModelType]:
        """Run a select with pagination."""
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def _create_row(self, obj: ModelType) -> ModelType:
        """Persist a new record and return it with server defaults loaded."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj
