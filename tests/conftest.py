"""
Test fixtures for DecisionLab.

Provides:
- An isolated SQLite file database per test (separate connections per
  session, so concurrent engine tasks behave as they do in production)
- The session factory ("store") every engine and service is built on
- Factories that insert decisions and outcome history directly
- A fixed, steppable clock for streak tests
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from decisionlab.db.engine import create_tables, make_session_factory
from decisionlab.db.models import Decision, Factor, FactorScore, Option, Outcome
from decisionlab.metrics import reset_insight_metrics

BASE_TIME = datetime(2026, 3, 2, 9, 0, 0)


# ── Database ────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create a test database engine with all tables."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'decisionlab.db'}", echo=False)
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory bound to the test engine."""
    return make_session_factory(engine)


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_insight_metrics()
    yield
    reset_insight_metrics()


# ── Clock ───────────────────────────────────────────────────────────────


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ── Data factories ──────────────────────────────────────────────────────


@pytest.fixture
def make_decision(session_factory):
    """
    Insert a decision with factors, options and scores.

    factors: (name, weight) pairs
    options: option names
    scores:  {(option_index, factor_index): score}
    """

    async def _make(
        factors: Sequence[tuple[str, float]] = (("Cost", 0.6), ("Quality", 0.4)),
        options: Sequence[str] = ("A", "B"),
        scores: Optional[dict[tuple[int, int], int]] = None,
        predicted: Optional[Sequence[Optional[float]]] = None,
        selected: Optional[int] = None,
        decision_date: Optional[datetime] = None,
        title: str = "Test decision",
    ) -> tuple[Decision, list[Factor], list[Option]]:
        async with session_factory.begin() as session:
            decision = Decision(
                id=uuid.uuid4(),
                title=title,
                status="completed" if selected is not None else "active",
                decision_date=decision_date,
                created_at=BASE_TIME,
            )
            session.add(decision)
            await session.flush()

            factor_rows = [
                Factor(
                    id=uuid.uuid4(),
                    decision_id=decision.id,
                    name=name,
                    weight=weight,
                    display_order=i,
                )
                for i, (name, weight) in enumerate(factors)
            ]
            option_rows = [
                Option(
                    id=uuid.uuid4(),
                    decision_id=decision.id,
                    name=name,
                    display_order=i,
                    predicted_satisfaction=predicted[i] if predicted else None,
                    is_selected=selected == i,
                )
                for i, name in enumerate(options)
            ]
            session.add_all(factor_rows + option_rows)
            await session.flush()

            for (oi, fi), score in (scores or {}).items():
                session.add(FactorScore(
                    id=uuid.uuid4(),
                    option_id=option_rows[oi].id,
                    factor_id=factor_rows[fi].id,
                    score=score,
                ))
            if selected is not None:
                decision.selected_option_id = option_rows[selected].id
        return decision, factor_rows, option_rows

    return _make


@pytest.fixture
def add_outcome(session_factory):
    """Insert an outcome row for a decision, bypassing side effects."""

    async def _add(decision_id: uuid.UUID, satisfaction: float, logged_at: datetime) -> Outcome:
        async with session_factory.begin() as session:
            outcome = Outcome(
                id=uuid.uuid4(),
                decision_id=decision_id,
                actual_satisfaction=satisfaction,
                logged_at=logged_at,
            )
            session.add(outcome)
        return outcome

    return _add


@pytest.fixture
def seed_history(make_decision, add_outcome):
    """
    Insert completed decisions with a predicted satisfaction and an outcome.

    entries are oldest first: (predicted, actual) or
    (predicted, actual, days_between_decision_and_log). Outcome i is logged
    at BASE_TIME + i hours, so the last entry is the newest.
    """

    async def _seed(
        entries: Sequence[tuple],
        factors: Sequence[tuple[str, float]] = (("Cost", 0.6), ("Quality", 0.4)),
    ) -> list[Decision]:
        decisions = []
        for i, entry in enumerate(entries):
            predicted, actual = entry[0], entry[1]
            logged_at = BASE_TIME + timedelta(hours=i)
            decision_date = logged_at - timedelta(days=entry[2]) if len(entry) > 2 else None
            decision, _, _ = await make_decision(
                factors=factors,
                predicted=[predicted, None],
                selected=0,
                decision_date=decision_date,
                title=f"History {i}",
            )
            await add_outcome(decision.id, actual, logged_at)
            decisions.append(decision)
        return decisions

    return _seed
