"""
Factor Correlation Engine Tests.

The engine uses a consistency proxy: factors whose decisions end in
consistently high (or low) satisfaction score close to ±1.
"""

import pytest

from decisionlab.insights.correlation import (
    CorrelationEngine,
    approximate_p_value,
    build_correlation_insight,
    correlation_priority,
    factor_correlation,
    mean_and_stddev,
)
from decisionlab.insights.schemas import InsightType


# ── Pure helpers ─────────────────────────────────────────────────────────


class TestConsistencyProxy:
    """Per-factor scoring."""

    def test_mean_and_population_stddev(self):
        mean, stddev = mean_and_stddev([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        assert mean == 5.0
        assert stddev == 2.0

    def test_too_few_samples(self):
        """Fewer than 5 satisfaction values → no correlation."""
        assert factor_correlation("Cost", [8.0, 8.0, 8.0, 8.0]) is None

    def test_consistent_high_satisfaction_is_positive(self):
        corr = factor_correlation("Cost", [8.0] * 5)
        assert corr.correlation == 1.0
        assert corr.direction == "positive"
        assert corr.p_value == 0.0
        assert corr.is_strong

    def test_low_mean_is_negative(self):
        """Mean at or below the midpoint flips the sign."""
        corr = factor_correlation("Cost", [5.0] * 6)
        assert corr.correlation == -1.0
        assert corr.direction == "negative"

    def test_scattered_satisfaction_is_weak(self):
        corr = factor_correlation("Cost", [1.0, 9.0, 1.0, 9.0, 1.0])
        assert abs(corr.correlation) < 0.6
        assert not corr.is_strong

    def test_decision_ids_deduplicated(self):
        corr = factor_correlation("Cost", [7.0] * 5, ["a", "a", "b", "c", "c"])
        assert corr.decision_ids == ("a", "b", "c")


class TestPValue:
    """Threshold lookup on t = |r|·√((n−2)/(1−r²))."""

    def test_small_sample(self):
        assert approximate_p_value(0.9, 2) == 1.0

    def test_perfect_correlation(self):
        assert approximate_p_value(1.0, 5) == 0.0

    def test_strong(self):
        # t ≈ 5.84
        assert approximate_p_value(0.9, 10) == 0.01

    def test_weak(self):
        # t ≈ 0.54
        assert approximate_p_value(0.3, 5) == 0.20


def test_priority_is_clamped():
    """floor(|r|·10) into 1..5."""
    assert correlation_priority(0.95) == 5
    assert correlation_priority(-0.42) == 4
    assert correlation_priority(0.05) == 1


def test_insight_text_by_direction():
    positive = build_correlation_insight(factor_correlation("Commute", [9.0] * 5))
    negative = build_correlation_insight(factor_correlation("Salary", [3.0] * 5))

    assert positive.insight_type == InsightType.CORRELATION
    assert positive.title == "Commute positively influences your satisfaction"
    assert "Consider prioritizing it" in positive.description
    assert negative.title == "Salary negatively influences your satisfaction"
    assert "adjusting its importance" in negative.description
    assert negative.metadata.direction == "negative"


# ── Engine ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fewer_than_five_outcomes_returns_empty(session_factory, seed_history):
    """Four outcomes → no analysis at all."""
    await seed_history([(None, 8.0)] * 4)
    assert await CorrelationEngine(session_factory).discover_correlations() == []


@pytest.mark.asyncio
async def test_consistent_factor_produces_insight(session_factory, seed_history):
    """Five decisions sharing a factor, all ending at 8/10 → one strong positive insight."""
    decisions = await seed_history([(None, 8.0)] * 5, factors=(("Career growth", 1.0),))
    insights = await CorrelationEngine(session_factory).discover_correlations()

    assert len(insights) == 1
    insight = insights[0]
    assert insight.insight_type == "correlation"
    assert insight.title == "Career growth positively influences your satisfaction"
    assert insight.priority == 5
    assert insight.metadata_["factor_name"] == "Career growth"
    assert insight.metadata_["sample_size"] == 5
    assert insight.metadata_["correlation"] == pytest.approx(1.0)
    assert sorted(insight.decision_ids) == sorted(str(d.id) for d in decisions)


@pytest.mark.asyncio
async def test_inconsistent_factor_is_ignored(session_factory, seed_history):
    await seed_history([(None, s) for s in (1.0, 9.0, 1.0, 9.0, 1.0)])
    assert await CorrelationEngine(session_factory).discover_correlations() == []


@pytest.mark.asyncio
async def test_factor_below_sample_threshold_is_skipped(session_factory, seed_history):
    """A factor used by only 4 of 6 decisions has too few samples."""
    await seed_history([(None, 8.0)] * 2, factors=(("Location", 1.0),))
    await seed_history([(None, 8.0)] * 4, factors=(("Price", 1.0),))
    insights = await CorrelationEngine(session_factory).discover_correlations()
    assert insights == []


@pytest.mark.asyncio
async def test_history_window_limits_outcomes(session_factory, seed_history):
    """Only the newest outcomes count: a window of 4 is below the minimum."""
    await seed_history([(None, 8.0)] * 6)
    engine = CorrelationEngine(session_factory, history_limit=4)
    assert await engine.discover_correlations() == []
