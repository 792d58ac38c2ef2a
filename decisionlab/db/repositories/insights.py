"""Insight persistence: create from drafts, feed queries, read/dismiss state."""

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decisionlab.db.models import Insight, utcnow
from decisionlab.db.repositories.base import BaseRepository
from decisionlab.errors import NotFoundError
from decisionlab.insights.schemas import InsightDraft


class InsightRepository(BaseRepository[Insight]):

    def __init__(self):
        super().__init__(Insight)

    async def create_from_drafts(
        self, db: AsyncSession, drafts: Sequence[InsightDraft]
    ) -> list[Insight]:
        """Persist drafts in order. Caller owns the transaction."""
        now = utcnow()
        rows = []
        for draft in drafts:
            row = Insight(
                id=uuid.uuid4(),
                insight_type=draft.insight_type.value,
                title=draft.title,
                description=draft.description,
                priority=draft.priority,
                is_read=False,
                is_actionable=draft.is_actionable,
                action_label=draft.action_label,
                metadata_=draft.metadata.model_dump(mode="json"),
                generated_at=now,
            )
            db.add(row)
            rows.append(row)
        await db.flush()
        return rows

    async def get_unread(self, db: AsyncSession, limit: Optional[int] = None) -> Sequence[Insight]:
        """Unread, undismissed insights: most urgent first, then newest."""
        stmt = (
            self._live(select(Insight))
            .where(Insight.is_read.is_(False), Insight.dismissed_at.is_(None))
            .order_by(Insight.priority.asc(), Insight.generated_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def get_for_decision(self, db: AsyncSession, decision_id: uuid.UUID) -> list[Insight]:
        """Insights whose metadata references the decision, newest first."""
        result = await db.execute(
            self._live(select(Insight)).order_by(Insight.generated_at.desc())
        )
        target = str(decision_id)
        return [i for i in result.scalars().all() if target in i.decision_ids]

    async def _require(self, db: AsyncSession, insight_id: uuid.UUID) -> Insight:
        insight = await self.get_by_id(db, insight_id)
        if insight is None:
            raise NotFoundError("Insight", insight_id)
        return insight

    async def mark_read(self, db: AsyncSession, insight_id: uuid.UUID) -> tuple[Insight, bool]:
        """Mark read. Returns (insight, newly_read); read_at is stamped once."""
        insight = await self._require(db, insight_id)
        if insight.is_read:
            return insight, False
        insight.is_read = True
        insight.read_at = utcnow()
        await db.flush()
        return insight, True

    async def dismiss(self, db: AsyncSession, insight_id: uuid.UUID) -> Insight:
        insight = await self._require(db, insight_id)
        if insight.dismissed_at is None:
            insight.dismissed_at = utcnow()
            await db.flush()
        return insight

    async def undismiss(self, db: AsyncSession, insight_id: uuid.UUID) -> Insight:
        insight = await self._require(db, insight_id)
        if insight.dismissed_at is not None:
            insight.dismissed_at = None
            await db.flush()
        return insight


insight_repo = InsightRepository()
