"""
Factor Correlation Engine.

Finds factors whose decisions end in consistently good (or consistently
bad) outcomes.

The "correlation" here is a consistency proxy, not Pearson's r:
1. Collect the outcome satisfaction of every recent decision that used a
   factor (matched by factor name)
2. consistency = 1 / (1 + stddev) of that list
3. r = +consistency when mean satisfaction > 5, else −consistency
4. Approximate a p-value from t = |r|·√((n−2)/(1−r²)) via a threshold table
5. Keep factors with |r| > 0.6, p < 0.05 and n ≥ 5
"""

import math
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.config import settings
from decisionlab.db.models import Insight
from decisionlab.db.repositories.history import get_factor_satisfaction
from decisionlab.db.repositories.insights import insight_repo
from decisionlab.insights.schemas import CorrelationMetadata, InsightDraft, InsightType

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MIN_OUTCOMES: int = 5
MIN_SAMPLES: int = 5
STRONG_CORRELATION: float = 0.6
SIGNIFICANCE: float = 0.05
SATISFACTION_MIDPOINT: float = 5.0

# (t above, p-value): first match wins
P_VALUE_TABLE = [(2.576, 0.01), (1.96, 0.05), (1.645, 0.10)]
P_VALUE_FLOOR = 0.20


@dataclass(frozen=True)
class FactorCorrelation:
    """Consistency-proxy correlation of one factor with outcome satisfaction."""
    factor_name: str
    correlation: float         # signed consistency, in [-1, 1]
    p_value: float
    sample_size: int
    mean_satisfaction: float
    decision_ids: tuple[str, ...] = ()

    @property
    def direction(self) -> str:
        return "positive" if self.correlation > 0 else "negative"

    @property
    def is_strong(self) -> bool:
        return (
            abs(self.correlation) > STRONG_CORRELATION
            and self.p_value < SIGNIFICANCE
            and self.sample_size >= MIN_SAMPLES
        )


def mean_and_stddev(values: list[float]) -> tuple[float, float]:
    """Mean and population standard deviation."""
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def approximate_p_value(r: float, n: int) -> float:
    """Rough two-tailed p-value for a correlation coefficient."""
    if n < 3:
        return 1.0
    denominator = 1 - r * r
    if denominator <= 0:
        return 0.0
    t = abs(r) * math.sqrt((n - 2) / denominator)
    for threshold, p in P_VALUE_TABLE:
        if t > threshold:
            return p
    return P_VALUE_FLOOR


def factor_correlation(
    factor_name: str, satisfaction: list[float], decision_ids: Optional[list[str]] = None
) -> Optional[FactorCorrelation]:
    """Score one factor; None when it has too few samples."""
    if len(satisfaction) < MIN_SAMPLES:
        return None
    mean, stddev = mean_and_stddev(satisfaction)
    consistency = 1 / (1 + stddev)
    r = consistency if mean > SATISFACTION_MIDPOINT else -consistency
    return FactorCorrelation(
        factor_name=factor_name,
        correlation=r,
        p_value=approximate_p_value(r, len(satisfaction)),
        sample_size=len(satisfaction),
        mean_satisfaction=mean,
        decision_ids=tuple(dict.fromkeys(decision_ids or [])),
    )


def correlation_priority(r: float) -> int:
    """floor(|r|·10) clamped into the 1–5 priority range."""
    return max(1, min(5, math.floor(abs(r) * 10)))


def build_correlation_insight(corr: FactorCorrelation) -> InsightDraft:
    positive = corr.direction == "positive"
    strength = abs(corr.correlation)
    guidance = (
        "Decisions involving this factor tend to lead to better outcomes. Consider prioritizing it."
        if positive else
        "Overweighting this factor may be reducing your satisfaction. Consider adjusting its importance."
    )
    return InsightDraft(
        insight_type=InsightType.CORRELATION,
        title=f"{corr.factor_name} {'positively' if positive else 'negatively'} influences your satisfaction"[:100],
        description=(
            f"Your '{corr.factor_name}' factor has a {strength * 100:.0f}% correlation with your "
            f"decision outcomes ({corr.sample_size} decisions analyzed). {guidance}"
        ),
        priority=correlation_priority(corr.correlation),
        metadata=CorrelationMetadata(
            factor_name=corr.factor_name,
            correlation=corr.correlation,
            p_value=corr.p_value,
            sample_size=corr.sample_size,
            direction=corr.direction,
            decision_ids=list(corr.decision_ids),
        ),
    )


class CorrelationEngine:
    """Discovers factor/satisfaction correlations and stores them as insights."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        history_limit: int = settings.insight_history_limit,
    ):
        self.session_factory = session_factory
        self.history_limit = history_limit

    async def analyze(self, session: AsyncSession) -> list[FactorCorrelation]:
        """Strong correlations, strongest first. Empty with < 5 outcomes."""
        n_outcomes, by_factor, sources = await get_factor_satisfaction(session, self.history_limit)
        if n_outcomes < MIN_OUTCOMES:
            logger.debug("correlation_insufficient_data", outcomes=n_outcomes, required=MIN_OUTCOMES)
            return []

        results = []
        for name, values in by_factor.items():
            corr = factor_correlation(name, values, sources.get(name))
            if corr is not None:
                results.append(corr)
        results.sort(key=lambda c: abs(c.correlation), reverse=True)

        strong = [c for c in results if c.is_strong]
        logger.info(
            "correlations_analyzed",
            outcomes=n_outcomes,
            factors=len(by_factor),
            candidates=len(results),
            strong=len(strong),
        )
        return strong

    async def discover_correlations(self) -> list[Insight]:
        """Analyze history and persist one insight per strong correlation."""
        async with self.session_factory() as session:
            strong = await self.analyze(session)
        if not strong:
            return []

        drafts = [build_correlation_insight(c) for c in strong]
        async with self.session_factory.begin() as session:
            return await insight_repo.create_from_drafts(session, drafts)
