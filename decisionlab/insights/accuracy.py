"""
Prediction Accuracy Engine.

Compares predicted satisfaction (on the chosen option) with the actual
satisfaction logged afterwards.

Metrics:
- Accuracy: share of predictions within 2 points of reality
- MAE / median absolute error
- Trend: MAE of the newest 3 vs. the 3 before (needs ≥ 6 pairs)

Every run overwrites the accuracy snapshot on the UserStat row and emits an
accuracy report, plus a milestone (≥ 70%, n ≥ 5) and an improvement
pattern (improving, n ≥ 10) when earned.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.config import settings
from decisionlab.db.models import Insight, utcnow
from decisionlab.db.repositories.history import PredictionPair, get_prediction_pairs
from decisionlab.db.repositories.insights import insight_repo
from decisionlab.db.repositories.user_stats import user_stat_transaction
from decisionlab.insights.schemas import (
    AccuracyMetadata,
    AccuracyTrend,
    AchievementMetadata,
    InsightDraft,
    InsightType,
    PatternMetadata,
)

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MIN_PAIRS: int = 3
ACCURATE_WITHIN: float = 2.0               # points on the 0-10 scale
TREND_WINDOW: int = 3
TREND_THRESHOLD_PCT: float = 15.0
MILESTONE_ACCURACY: float = 70.0
MILESTONE_MIN_PAIRS: int = 5
TREND_INSIGHT_MIN_PAIRS: int = 10
GOOD_ACCURACY: float = 70.0
FAIR_ACCURACY: float = 50.0


@dataclass(frozen=True)
class AccuracyMetrics:
    """Prediction accuracy over the recent history window."""
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float       # 0-100, unrounded
    mean_absolute_error: float
    median_absolute_error: float
    trend: AccuracyTrend
    decision_ids: list[str] = field(default_factory=list)


def median(values: Sequence[float]) -> float:
    ordered = sorted(values)
    n = len(ordered)
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def calculate_trend(pairs: Sequence[PredictionPair]) -> AccuracyTrend:
    """Newest-first pairs → improving / declining / stable.

    A perfect older window cannot improve: the trend is stable if the
    recent window is also perfect, declining otherwise.
    """
    if len(pairs) < 2 * TREND_WINDOW:
        return AccuracyTrend.STABLE

    recent = pairs[:TREND_WINDOW]
    older = pairs[TREND_WINDOW:2 * TREND_WINDOW]
    recent_mae = sum(p.abs_error for p in recent) / len(recent)
    older_mae = sum(p.abs_error for p in older) / len(older)

    if older_mae == 0:
        return AccuracyTrend.STABLE if recent_mae == 0 else AccuracyTrend.DECLINING

    improvement = (older_mae - recent_mae) / older_mae * 100
    if improvement > TREND_THRESHOLD_PCT:
        return AccuracyTrend.IMPROVING
    if improvement < -TREND_THRESHOLD_PCT:
        return AccuracyTrend.DECLINING
    return AccuracyTrend.STABLE


def calculate_accuracy_metrics(pairs: Sequence[PredictionPair]) -> AccuracyMetrics:
    errors = [p.abs_error for p in pairs]
    total = len(pairs)
    correct = sum(1 for e in errors if e <= ACCURATE_WITHIN)
    return AccuracyMetrics(
        total_predictions=total,
        correct_predictions=correct,
        accuracy_percentage=correct / total * 100,
        mean_absolute_error=sum(errors) / total,
        median_absolute_error=median(errors),
        trend=calculate_trend(pairs),
        decision_ids=list(dict.fromkeys(str(p.decision_id) for p in pairs)),
    )


def accuracy_score(metrics: Optional[AccuracyMetrics]) -> int:
    """0-100 gamification score: 70% accuracy rate, 30% inverse MAE."""
    if metrics is None:
        return 0
    accuracy_component = metrics.accuracy_percentage * 0.7
    error_component = max(0.0, (10 - metrics.mean_absolute_error) / 10) * 100 * 0.3
    return round(accuracy_component + error_component)


# ── Insight builders ──────────────────────────────────────────────────────


def build_report_insight(m: AccuracyMetrics) -> InsightDraft:
    pct = round(m.accuracy_percentage)
    description = (
        f"You've made {m.total_predictions} predictions, and {m.correct_predictions} "
        "were accurate (within 2 points). "
    )
    if m.accuracy_percentage >= GOOD_ACCURACY:
        description += "Great job! You're learning to predict your satisfaction well."
    elif m.accuracy_percentage >= FAIR_ACCURACY:
        description += "You're getting better at predicting outcomes. Keep logging!"
    else:
        description += "Your accuracy is improving as you log more outcomes."

    return InsightDraft(
        insight_type=InsightType.ACCURACY_TRACKING,
        title=f"Your Prediction Accuracy: {pct}%",
        description=description,
        priority=2,
        metadata=AccuracyMetadata(
            accuracy_percentage=m.accuracy_percentage,
            total_predictions=m.total_predictions,
            correct_predictions=m.correct_predictions,
            mean_absolute_error=m.mean_absolute_error,
            median_absolute_error=m.median_absolute_error,
            trend=m.trend,
            decision_ids=m.decision_ids,
        ),
    )


def build_milestone_insight(m: AccuracyMetrics) -> InsightDraft:
    return InsightDraft(
        insight_type=InsightType.ACHIEVEMENT,
        title="Achievement: Accurate Predictor!",
        description=(
            f"You've reached {round(m.accuracy_percentage)}% prediction accuracy across "
            f"{m.total_predictions} decisions. You're learning to predict your own satisfaction!"
        ),
        priority=3,
        metadata=AchievementMetadata(
            badge_name="accurate_predictor",
            accuracy_percentage=m.accuracy_percentage,
            total_count=m.total_predictions,
            decision_ids=m.decision_ids,
        ),
    )


def build_trend_insight(m: AccuracyMetrics) -> InsightDraft:
    return InsightDraft(
        insight_type=InsightType.PATTERN,
        title="Your Predictions Are Improving!",
        description=(
            "Your recent predictions are more accurate than your earlier ones. The more you use "
            "the app, the better you get at predicting satisfaction."
        ),
        priority=3,
        metadata=PatternMetadata(
            pattern_type="accuracy_improvement",
            confidence=0.8,
            decision_ids=m.decision_ids[:2 * TREND_WINDOW],
        ),
    )


def build_accuracy_insights(m: AccuracyMetrics) -> list[InsightDraft]:
    drafts = [build_report_insight(m)]
    if m.accuracy_percentage >= MILESTONE_ACCURACY and m.total_predictions >= MILESTONE_MIN_PAIRS:
        drafts.append(build_milestone_insight(m))
    if m.trend == AccuracyTrend.IMPROVING and m.total_predictions >= TREND_INSIGHT_MIN_PAIRS:
        drafts.append(build_trend_insight(m))
    return drafts


class AccuracyEngine:
    """Tracks prediction accuracy and keeps the UserStat snapshot current."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        history_limit: int = settings.insight_history_limit,
    ):
        self.session_factory = session_factory
        self.history_limit = history_limit

    async def get_metrics(self) -> Optional[AccuracyMetrics]:
        """Metrics over the history window; None when there are no pairs."""
        async with self.session_factory() as session:
            pairs = await get_prediction_pairs(session, self.history_limit)
        if not pairs:
            return None
        return calculate_accuracy_metrics(pairs)

    async def generate_accuracy_insights(self) -> list[Insight]:
        metrics = await self.get_metrics()
        if metrics is None or metrics.total_predictions < MIN_PAIRS:
            logger.debug(
                "accuracy_insufficient_data",
                pairs=0 if metrics is None else metrics.total_predictions,
                required=MIN_PAIRS,
            )
            return []

        await self.update_snapshot(metrics)

        drafts = build_accuracy_insights(metrics)
        async with self.session_factory.begin() as session:
            insights = await insight_repo.create_from_drafts(session, drafts)

        logger.info(
            "accuracy_calculated",
            total=metrics.total_predictions,
            correct=metrics.correct_predictions,
            accuracy_pct=round(metrics.accuracy_percentage, 1),
            mae=round(metrics.mean_absolute_error, 3),
            trend=metrics.trend.value,
            insights=len(insights),
        )
        return insights

    async def update_snapshot(self, metrics: AccuracyMetrics) -> None:
        """Overwrite the UserStat accuracy snapshot (locked read-modify-write)."""
        async with user_stat_transaction(self.session_factory) as stat:
            stat.total_predictions = metrics.total_predictions
            stat.correct_predictions = metrics.correct_predictions
            stat.mean_absolute_error = metrics.mean_absolute_error
            stat.accuracy_calculated_at = utcnow()

    async def calculate_accuracy_score(self) -> int:
        return accuracy_score(await self.get_metrics())
