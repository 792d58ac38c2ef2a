"""
Generic async read helpers.

Soft-deleted rows are invisible: every lookup filters on is_deleted
when the model carries that column.
"""

import uuid
from typing import Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from decisionlab.db.engine import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Point lookup, listing and counting for one model."""

    def __init__(self, model: Type[ModelT]):
        self.model = model

    def _live(self, stmt):
        if hasattr(self.model, "is_deleted"):
            stmt = stmt.where(self.model.is_deleted.is_(False))
        return stmt

    async def get_by_id(self, db: AsyncSession, id: uuid.UUID) -> Optional[ModelT]:
        """Get a single live record by ID."""
        result = await db.execute(
            self._live(select(self.model).where(self.model.id == id))
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        db: AsyncSession,
        offset: int = 0,
        limit: int = 50,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> Sequence[ModelT]:
        """List live records with pagination."""
        col = getattr(self.model, order_by)
        stmt = self._live(select(self.model)).order_by(
            col.desc() if descending else col.asc()
        ).offset(offset).limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def count(self, db: AsyncSession) -> int:
        """Count live records."""
        stmt = self._live(select(func.count()).select_from(self.model))
        result = await db.execute(stmt)
        return result.scalar_one()
