"""
Outcome Service — record what actually happened after a decision.

Logging an outcome has two independent side effects that run side by
side once the outcome is stored:
1. InsightOrchestrator generates insights (never raises)
2. GamificationTracker updates counters, streak and badges

A tracker failure is logged and reported as a missing gamification block.
It never undoes the stored outcome or the insights.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.models import Decision, Outcome, utcnow
from decisionlab.errors import NotFoundError, ValidationError
from decisionlab.gamification.tracker import GamificationTracker
from decisionlab.insights.orchestrator import InsightOrchestrator
from decisionlab.insights.schemas import InsightResponse
from decisionlab.outcomes.schemas import OutcomeLogResult, OutcomeResponse

logger = structlog.get_logger(__name__)

MIN_SATISFACTION: float = 0.0
MAX_SATISFACTION: float = 10.0
MAX_SURPRISE: int = 3


def validate_outcome(actual_satisfaction: float, surprise_factor: int) -> list[str]:
    errors = []
    if not MIN_SATISFACTION <= actual_satisfaction <= MAX_SATISFACTION:
        errors.append(
            f"Actual satisfaction must be between {MIN_SATISFACTION:g} and "
            f"{MAX_SATISFACTION:g} (got {actual_satisfaction})"
        )
    if not -MAX_SURPRISE <= surprise_factor <= MAX_SURPRISE:
        errors.append(
            f"Surprise factor must be between -{MAX_SURPRISE} and {MAX_SURPRISE} (got {surprise_factor})"
        )
    return errors


class OutcomeService:
    """Stores outcomes and fires their side effects."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: Optional[InsightOrchestrator] = None,
        tracker: Optional[GamificationTracker] = None,
    ):
        self.session_factory = session_factory
        self.tracker = tracker or GamificationTracker(session_factory)
        self.orchestrator = orchestrator or InsightOrchestrator(session_factory, tracker=self.tracker)

    async def record_outcome(
        self,
        decision_id: uuid.UUID,
        actual_satisfaction: float,
        surprise_factor: int = 0,
        notes: Optional[str] = None,
        log_source: str = "manual",
        logged_at: Optional[datetime] = None,
    ) -> Outcome:
        """Validate and persist an outcome without triggering side effects."""
        errors = validate_outcome(actual_satisfaction, surprise_factor)
        if errors:
            raise ValidationError(errors, subject="outcome")

        async with self.session_factory.begin() as session:
            decision = await session.get(Decision, decision_id)
            if decision is None or decision.is_deleted:
                raise NotFoundError("Decision", decision_id)

            existing = await session.execute(
                select(Outcome.id).where(
                    Outcome.decision_id == decision_id, Outcome.is_deleted.is_(False)
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ValidationError(
                    [f"Decision {decision_id} already has an outcome"], subject="outcome"
                )

            outcome = Outcome(
                id=uuid.uuid4(),
                decision_id=decision_id,
                logged_at=logged_at or utcnow(),
                actual_satisfaction=actual_satisfaction,
                surprise_factor=surprise_factor,
                notes=notes,
                log_source=log_source,
            )
            session.add(outcome)
            await session.flush()

        logger.info(
            "outcome_recorded",
            outcome_id=str(outcome.id),
            decision_id=str(decision_id),
            satisfaction=actual_satisfaction,
            surprise=surprise_factor,
        )
        return outcome

    async def log_outcome(
        self,
        decision_id: uuid.UUID,
        actual_satisfaction: float,
        surprise_factor: int = 0,
        notes: Optional[str] = None,
        log_source: str = "manual",
        logged_at: Optional[datetime] = None,
    ) -> OutcomeLogResult:
        """Store the outcome, then generate insights and update gamification."""
        outcome = await self.record_outcome(
            decision_id, actual_satisfaction, surprise_factor, notes, log_source, logged_at
        )

        insights, gamification = await asyncio.gather(
            self.orchestrator.generate_insights_after_outcome_log(outcome),
            self.tracker.record_outcome_log(),
            return_exceptions=True,
        )

        if isinstance(insights, BaseException):
            # The orchestrator contract says this cannot happen
            logger.error("insight_generation_escaped", error=str(insights), exc_info=insights)
            insights = []
        if isinstance(gamification, BaseException):
            logger.error(
                "outcome_gamification_failed",
                decision_id=str(decision_id),
                error=str(gamification),
                exc_info=gamification,
            )
            gamification = None

        now = utcnow()
        return OutcomeLogResult(
            outcome=OutcomeResponse.model_validate(outcome),
            insights=[InsightResponse.from_model(i, now) for i in insights],
            gamification=gamification,
        )
