"""
Read-only outcome history shared by the insight engines.

Every query looks at the most recent outcomes only (newest first), so the
engines see the same window of history.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from decisionlab.db.models import Decision, Factor, Option, Outcome

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class PredictionPair:
    """A logged outcome whose decision carried a satisfaction prediction."""

    decision_id: uuid.UUID
    outcome_id: uuid.UUID
    predicted: float
    actual: float
    logged_at: datetime
    decision_date: Optional[datetime]

    @property
    def error(self) -> float:
        """Signed prediction error. Positive means over-predicted."""
        return self.predicted - self.actual

    @property
    def abs_error(self) -> float:
        return abs(self.predicted - self.actual)


def _recent_outcomes(limit: int):
    return (
        select(Outcome, Decision)
        .join(Decision, Decision.id == Outcome.decision_id)
        .where(Outcome.is_deleted.is_(False), Decision.is_deleted.is_(False))
        .order_by(Outcome.logged_at.desc())
        .limit(limit)
    )


async def count_outcomes(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Outcome).where(Outcome.is_deleted.is_(False))
    )
    return result.scalar_one()


async def get_prediction_pairs(
    db: AsyncSession, limit: int = DEFAULT_HISTORY_LIMIT
) -> list[PredictionPair]:
    """Prediction/outcome pairs from the recent window, newest first.

    An outcome qualifies when its decision has a selected option and that
    option has a predicted satisfaction.
    """
    rows = (await db.execute(_recent_outcomes(limit))).all()

    selected_ids = [d.selected_option_id for _, d in rows if d.selected_option_id is not None]
    predictions: dict[uuid.UUID, Optional[float]] = {}
    if selected_ids:
        result = await db.execute(
            select(Option.id, Option.predicted_satisfaction).where(Option.id.in_(selected_ids))
        )
        predictions = {oid: pred for oid, pred in result.all()}

    pairs = []
    for outcome, decision in rows:
        predicted = predictions.get(decision.selected_option_id)
        if predicted is None:
            continue
        pairs.append(PredictionPair(
            decision_id=decision.id,
            outcome_id=outcome.id,
            predicted=predicted,
            actual=outcome.actual_satisfaction,
            logged_at=outcome.logged_at,
            decision_date=decision.decision_date,
        ))
    return pairs


async def get_factor_satisfaction(
    db: AsyncSession, limit: int = DEFAULT_HISTORY_LIMIT
) -> tuple[int, dict[str, list[float]], dict[str, list[str]]]:
    """Map each factor name to the satisfaction of outcomes whose decision used it.

    Returns (outcome_count, name -> satisfaction list, name -> decision ids).
    """
    rows = (await db.execute(_recent_outcomes(limit))).all()
    if not rows:
        return 0, {}, {}

    decision_ids = [d.id for _, d in rows]
    result = await db.execute(
        select(Factor.decision_id, Factor.name)
        .where(Factor.decision_id.in_(decision_ids), Factor.is_deleted.is_(False))
        .order_by(Factor.display_order, Factor.created_at)
    )
    names_by_decision: dict[uuid.UUID, list[str]] = {}
    for decision_id, name in result.all():
        names_by_decision.setdefault(decision_id, []).append(name)

    satisfaction: dict[str, list[float]] = {}
    sources: dict[str, list[str]] = {}
    for outcome, decision in rows:
        for name in names_by_decision.get(decision.id, []):
            satisfaction.setdefault(name, []).append(outcome.actual_satisfaction)
            sources.setdefault(name, []).append(str(decision.id))
    return len(rows), satisfaction, sources
