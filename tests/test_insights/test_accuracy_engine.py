"""
Prediction Accuracy Engine Tests.

Covers metric math (accuracy, MAE, median, trend), the UserStat snapshot
and the up-to-three insights per run.
"""

import uuid
from datetime import datetime

import pytest

from decisionlab.db.repositories.history import PredictionPair
from decisionlab.db.repositories.user_stats import read_user_stat
from decisionlab.insights.accuracy import (
    AccuracyEngine,
    accuracy_score,
    build_accuracy_insights,
    calculate_accuracy_metrics,
    calculate_trend,
    median,
)
from decisionlab.insights.schemas import AccuracyTrend, InsightType


def _pairs(abs_errors: list[float]) -> list[PredictionPair]:
    """Newest first, each over-predicting by the given amount."""
    return [
        PredictionPair(
            decision_id=uuid.uuid4(),
            outcome_id=uuid.uuid4(),
            predicted=5.0 + e,
            actual=5.0,
            logged_at=datetime(2026, 3, 2),
            decision_date=None,
        )
        for e in abs_errors
    ]


# ── Metrics ──────────────────────────────────────────────────────────────


class TestMetrics:

    def test_median_odd_and_even(self):
        assert median([3.0, 1.0, 2.0]) == 2.0
        assert median([4.0, 1.0, 3.0, 2.0]) == 2.5

    def test_accuracy_counts_within_two_points(self):
        """Errors 1, 3, 0.5, 2, 5 → 3 of 5 accurate (2.0 counts)."""
        m = calculate_accuracy_metrics(_pairs([1.0, 3.0, 0.5, 2.0, 5.0]))
        assert m.total_predictions == 5
        assert m.correct_predictions == 3
        assert m.accuracy_percentage == pytest.approx(60.0)
        assert m.mean_absolute_error == pytest.approx(2.3)
        assert m.median_absolute_error == 2.0

    def test_accuracy_score(self):
        """70% weight on accuracy, 30% on inverse MAE."""
        m = calculate_accuracy_metrics(_pairs([1.0, 3.0, 0.5, 2.0, 5.0]))
        # 42 + 23.1
        assert accuracy_score(m) == 65
        assert accuracy_score(None) == 0


class TestTrend:
    """Newest three vs. the three before them."""

    def test_needs_six_pairs(self):
        assert calculate_trend(_pairs([0.0] * 3 + [3.0] * 2)) == AccuracyTrend.STABLE

    def test_improving(self):
        assert calculate_trend(_pairs([0.5] * 3 + [2.0] * 3)) == AccuracyTrend.IMPROVING

    def test_declining(self):
        assert calculate_trend(_pairs([2.0] * 3 + [0.5] * 3)) == AccuracyTrend.DECLINING

    def test_within_fifteen_percent_is_stable(self):
        assert calculate_trend(_pairs([1.1] * 3 + [1.0] * 3)) == AccuracyTrend.STABLE

    def test_perfect_older_window(self):
        assert calculate_trend(_pairs([0.0] * 6)) == AccuracyTrend.STABLE
        assert calculate_trend(_pairs([1.0] * 3 + [0.0] * 3)) == AccuracyTrend.DECLINING


class TestInsightSelection:

    def test_report_only_below_milestone(self):
        drafts = build_accuracy_insights(calculate_accuracy_metrics(_pairs([3.0] * 5)))
        assert [d.insight_type for d in drafts] == [InsightType.ACCURACY_TRACKING]
        assert drafts[0].priority == 2
        assert drafts[0].title == "Your Prediction Accuracy: 0%"

    def test_milestone_needs_five_pairs(self):
        four = build_accuracy_insights(calculate_accuracy_metrics(_pairs([1.0] * 4)))
        five = build_accuracy_insights(calculate_accuracy_metrics(_pairs([1.0] * 5)))
        assert len(four) == 1
        assert [d.insight_type for d in five] == [InsightType.ACCURACY_TRACKING, InsightType.ACHIEVEMENT]
        assert five[1].metadata.badge_name == "accurate_predictor"


# ── Engine ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fewer_than_three_pairs(session_factory, seed_history):
    """Two pairs → no insights and the snapshot stays untouched."""
    await seed_history([(6.0, 5.0)] * 2)
    assert await AccuracyEngine(session_factory).generate_accuracy_insights() == []

    stat = await read_user_stat(session_factory)
    assert stat.total_predictions == 0
    assert stat.accuracy_calculated_at is None


@pytest.mark.asyncio
async def test_snapshot_written_and_milestone_emitted(session_factory, seed_history):
    """Five predictions all within a point → report + milestone, snapshot overwritten."""
    await seed_history([(6.0, 5.0)] * 5)
    insights = await AccuracyEngine(session_factory).generate_accuracy_insights()

    assert [i.insight_type for i in insights] == ["accuracy_tracking", "achievement"]
    assert insights[0].title == "Your Prediction Accuracy: 100%"

    stat = await read_user_stat(session_factory)
    assert stat.total_predictions == 5
    assert stat.correct_predictions == 5
    assert stat.mean_absolute_error == pytest.approx(1.0)
    assert stat.accuracy_percentage == 100
    assert stat.accuracy_calculated_at is not None


@pytest.mark.asyncio
async def test_three_insights_when_improving(session_factory, seed_history):
    """Ten accurate predictions, the newest three perfect → report, milestone, trend."""
    await seed_history([(7.0, 5.0)] * 7 + [(6.0, 6.0)] * 3)
    engine = AccuracyEngine(session_factory)
    insights = await engine.generate_accuracy_insights()

    assert [i.insight_type for i in insights] == ["accuracy_tracking", "achievement", "pattern"]
    assert insights[0].metadata_["trend"] == "improving"
    assert insights[2].metadata_["pattern_type"] == "accuracy_improvement"
    # 70 + 30 · (10 − 1.4) / 10
    assert await engine.calculate_accuracy_score() == 96


@pytest.mark.asyncio
async def test_snapshot_is_overwritten(session_factory, seed_history):
    """A later run replaces the earlier snapshot instead of adding to it."""
    await seed_history([(6.0, 5.0)] * 3)
    engine = AccuracyEngine(session_factory)
    await engine.generate_accuracy_insights()
    await engine.generate_accuracy_insights()

    stat = await read_user_stat(session_factory)
    assert stat.total_predictions == 3
