"""
Insight Orchestrator — runs after every outcome log.

Pipeline:
1. Fan out correlation, bias and accuracy engines as independent tasks,
   each inside its own error boundary
2. Merge results in engine order (no re-sorting)
3. Measure wall-clock time against the advisory budget (warn, never cancel)
4. Empty result → one deterministic progress insight (itself guarded)
5. Feed the generated count into the gamification counters

generate_insights_after_outcome_log() never raises.
"""

import asyncio
import time
import uuid
from typing import Awaitable, Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab import metrics
from decisionlab.config import settings
from decisionlab.db.models import Insight, Outcome
from decisionlab.db.repositories.history import count_outcomes
from decisionlab.db.repositories.insights import insight_repo
from decisionlab.gamification.tracker import GamificationTracker
from decisionlab.insights.accuracy import AccuracyEngine
from decisionlab.insights.bias import BiasEngine
from decisionlab.insights.correlation import CorrelationEngine
from decisionlab.insights.schemas import AchievementMetadata, InsightDraft, InsightType

logger = structlog.get_logger(__name__)

MILESTONE_OUTCOMES = 5


def build_progress_insight(total_outcomes: int, decision_id: uuid.UUID) -> InsightDraft:
    """Fallback insight, tiered by how many outcomes exist in total."""
    if total_outcomes <= 1:
        title = "Great start!"
        description = (
            "You logged your first outcome. Keep logging outcomes to unlock personalized "
            "insights about your decision-making."
        )
    elif total_outcomes < MILESTONE_OUTCOMES:
        remaining = MILESTONE_OUTCOMES - total_outcomes
        title = "Building your track record"
        description = (
            f"You've logged {total_outcomes} outcomes. Log {remaining} more to unlock "
            "correlation insights about what drives your satisfaction."
        )
    elif total_outcomes == MILESTONE_OUTCOMES:
        title = "Milestone: 5 outcomes logged!"
        description = (
            "You now have enough history for correlation analysis. Insights will get sharper "
            "with every outcome you log."
        )
    else:
        title = "Outcome logged"
        description = (
            f"That's {total_outcomes} outcomes logged. Keep going, every outcome makes your "
            "insights more accurate."
        )

    return InsightDraft(
        insight_type=InsightType.ACHIEVEMENT,
        title=title,
        description=description,
        priority=5,
        metadata=AchievementMetadata(
            total_count=total_outcomes,
            decision_ids=[str(decision_id)],
        ),
    )


class InsightOrchestrator:
    """
    Coordinates the analytical engines and owns the insight feed operations.

    Engines and the tracker default to ones built on the same session
    factory; pass them in to substitute.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        correlation_engine: Optional[CorrelationEngine] = None,
        bias_engine: Optional[BiasEngine] = None,
        accuracy_engine: Optional[AccuracyEngine] = None,
        tracker: Optional[GamificationTracker] = None,
        budget_seconds: float = settings.insight_budget_seconds,
        concurrent: bool = settings.run_engines_concurrently,
    ):
        self.session_factory = session_factory
        self.correlation_engine = correlation_engine or CorrelationEngine(session_factory)
        self.bias_engine = bias_engine or BiasEngine(session_factory)
        self.accuracy_engine = accuracy_engine or AccuracyEngine(session_factory)
        self.tracker = tracker or GamificationTracker(session_factory)
        self.budget_seconds = budget_seconds
        self.concurrent = concurrent

    async def _run_engine(
        self, name: str, run: Callable[[], Awaitable[list[Insight]]]
    ) -> list[Insight]:
        """Error boundary for one engine: failures become zero insights."""
        try:
            insights = await run()
            logger.debug("insight_engine_finished", engine=name, insights=len(insights))
            return insights
        except Exception as e:
            metrics.increment("engine_failures_total")
            logger.error("insight_engine_failed", engine=name, error=str(e), exc_info=True)
            return []

    async def _fan_out(self) -> list[Insight]:
        tasks = [
            ("correlation", self.correlation_engine.discover_correlations),
            ("bias", self.bias_engine.detect_biases),
            ("accuracy", self.accuracy_engine.generate_accuracy_insights),
        ]
        if self.concurrent:
            results = await asyncio.gather(
                *(self._run_engine(name, run) for name, run in tasks)
            )
        else:
            results = [await self._run_engine(name, run) for name, run in tasks]

        merged: list[Insight] = []
        for batch in results:
            merged.extend(batch)
        return merged

    async def _create_fallback(self, decision_id: uuid.UUID) -> list[Insight]:
        """One progress insight. Returns [] (and counts the anomaly) if even this fails."""
        try:
            async with self.session_factory.begin() as session:
                total = await count_outcomes(session)
                draft = build_progress_insight(total, decision_id)
                rows = await insight_repo.create_from_drafts(session, [draft])
            metrics.increment("fallback_insights_total")
            logger.info("fallback_insight_created", total_outcomes=total)
            return rows
        except Exception as e:
            metrics.increment("fallback_failures_total")
            logger.error(
                "fallback_insight_failed",
                decision_id=str(decision_id),
                error=str(e),
                exc_info=True,
            )
            return []

    async def generate_insights_after_outcome_log(self, outcome: Outcome) -> list[Insight]:
        """Run every engine for a freshly logged outcome. Never raises."""
        start = time.perf_counter()
        metrics.increment("insight_runs_total")
        insights: list[Insight] = []

        # ── 1-2. Fan out + merge ────────────────────────────────────────
        try:
            insights = await self._fan_out()
        except Exception as e:
            logger.error("insight_fan_out_failed", error=str(e), exc_info=True)
            insights = []

        # ── 3. Budget ───────────────────────────────────────────────────
        elapsed = time.perf_counter() - start
        metrics.observe_generation_ms(elapsed * 1000)
        if elapsed > self.budget_seconds:
            metrics.increment("budget_exceeded_total")
            logger.warning(
                "insight_budget_exceeded",
                elapsed_ms=round(elapsed * 1000, 1),
                budget_ms=round(self.budget_seconds * 1000),
            )

        # ── 4. Fallback ─────────────────────────────────────────────────
        if not insights:
            insights = await self._create_fallback(outcome.decision_id)

        # ── 5. Counters ─────────────────────────────────────────────────
        metrics.increment("insights_generated_total", len(insights))
        if insights:
            try:
                await self.tracker.record_insights_generated(len(insights))
            except Exception as e:
                logger.error("insight_counter_update_failed", error=str(e), exc_info=True)

        logger.info(
            "insights_generated",
            decision_id=str(outcome.decision_id),
            count=len(insights),
            elapsed_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return insights

    # ── Feed operations ───────────────────────────────────────────────

    async def get_unread_insights(self, limit: Optional[int] = None) -> list[Insight]:
        async with self.session_factory() as session:
            return list(await insight_repo.get_unread(session, limit))

    async def mark_insight_as_read(self, insight_id: uuid.UUID) -> Insight:
        """Mark read; the read counter moves only on the first read."""
        async with self.session_factory.begin() as session:
            insight, newly_read = await insight_repo.mark_read(session, insight_id)
        if newly_read:
            await self.tracker.record_insight_read()
        return insight

    async def dismiss_insight(self, insight_id: uuid.UUID) -> Insight:
        async with self.session_factory.begin() as session:
            return await insight_repo.dismiss(session, insight_id)

    async def undismiss_insight(self, insight_id: uuid.UUID) -> Insight:
        async with self.session_factory.begin() as session:
            return await insight_repo.undismiss(session, insight_id)

    async def get_insights_for_decision(self, decision_id: uuid.UUID) -> list[Insight]:
        async with self.session_factory() as session:
            return await insight_repo.get_for_decision(session, decision_id)
