"""
Cognitive Bias Engine.

Three independent detectors over prediction/outcome pairs (newest first),
each yielding at most one finding:

1. Prediction bias: one-sample t-test of (predicted − actual) against 0.
   Significant positive mean → optimism, negative → pessimism.
2. Planning fallacy: most outcomes are logged > 14 days after the decision.
3. Recency bias: the 5 newest predictions are > 30% less accurate (by MAE)
   than the 5 before them.

Cheap approximations throughout; these are nudges, not statistics papers.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.config import settings
from decisionlab.db.models import Insight
from decisionlab.db.repositories.history import PredictionPair, get_prediction_pairs
from decisionlab.db.repositories.insights import insight_repo
from decisionlab.insights.schemas import BiasMetadata, BiasType, InsightDraft, InsightType

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MIN_PAIRS: int = 5
RECENCY_MIN_PAIRS: int = 10
RECENCY_WINDOW: int = 5
RECENCY_INCREASE_THRESHOLD: float = 0.3    # 30% worse MAE
PLANNING_DELAY_DAYS: int = 14
PLANNING_MIN_DELAYED: int = 3
PLANNING_MIN_SHARE: float = 0.5
PLANNING_NORMALIZER_DAYS: float = 30.0
ERROR_NORMALIZER: float = 10.0             # satisfaction scale width

# (minimum df, two-tailed critical t at p = 0.05)
T_CRITICAL_TABLE = [(30, 1.96), (20, 2.086), (10, 2.228), (5, 2.571)]
T_CRITICAL_FLOOR = 3.182

BIAS_TITLES = {
    BiasType.OPTIMISM: "Optimism Bias Detected",
    BiasType.PESSIMISM: "Pessimism Bias Detected",
    BiasType.PLANNING_FALLACY: "Planning Fallacy Detected",
    BiasType.RECENCY: "Recency Bias Detected",
}


@dataclass(frozen=True)
class BiasFinding:
    """One detected bias."""
    bias_type: BiasType
    magnitude: float           # 0-1
    direction: str             # "positive" = over-estimate
    sample_size: int
    p_value: float
    description: str
    decision_ids: list[str] = field(default_factory=list)


def t_critical(degrees_of_freedom: int) -> float:
    for min_df, value in T_CRITICAL_TABLE:
        if degrees_of_freedom >= min_df:
            return value
    return T_CRITICAL_FLOOR


def bias_priority(magnitude: float) -> int:
    if magnitude >= 0.7:
        return 1
    if magnitude >= 0.5:
        return 2
    if magnitude >= 0.3:
        return 3
    return 4


def _decision_ids(pairs: Sequence[PredictionPair]) -> list[str]:
    return list(dict.fromkeys(str(p.decision_id) for p in pairs))


def _mean_abs_error(pairs: Sequence[PredictionPair]) -> float:
    return sum(p.abs_error for p in pairs) / len(pairs)


def detect_prediction_bias(pairs: Sequence[PredictionPair]) -> Optional[BiasFinding]:
    """Optimism or pessimism when the mean error is significantly non-zero.

    A zero standard deviation with a non-zero mean (every prediction off by
    the same amount) is treated as infinitely significant.
    """
    if len(pairs) < MIN_PAIRS:
        return None

    errors = [p.error for p in pairs]
    n = len(errors)
    mean = sum(errors) / n
    stddev = math.sqrt(sum((e - mean) ** 2 for e in errors) / n)

    if mean == 0:
        return None
    t = math.inf if stddev == 0 else abs(mean) / (stddev / math.sqrt(n))
    if t < t_critical(n - 1):
        return None

    optimistic = mean > 0
    verb = "overestimate" if optimistic else "underestimate"
    return BiasFinding(
        bias_type=BiasType.OPTIMISM if optimistic else BiasType.PESSIMISM,
        magnitude=min(abs(mean) / ERROR_NORMALIZER, 1.0),
        direction="positive" if optimistic else "negative",
        sample_size=n,
        p_value=0.01 if t > 2.576 else 0.05,
        description=f"You tend to {verb} satisfaction by {abs(mean):.1f} points on average",
        decision_ids=_decision_ids(pairs),
    )


def detect_planning_fallacy(pairs: Sequence[PredictionPair]) -> Optional[BiasFinding]:
    """Outcomes routinely logged long after the decision was made."""
    if not pairs:
        return None

    delayed = []
    for pair in pairs:
        if pair.decision_date is None:
            continue
        days = (pair.logged_at - pair.decision_date).days
        if days > PLANNING_DELAY_DAYS:
            delayed.append((pair, days))

    if len(delayed) < PLANNING_MIN_DELAYED or len(delayed) / len(pairs) <= PLANNING_MIN_SHARE:
        return None

    avg_delay = sum(days for _, days in delayed) / len(delayed)
    return BiasFinding(
        bias_type=BiasType.PLANNING_FALLACY,
        magnitude=min(avg_delay / PLANNING_NORMALIZER_DAYS, 1.0),
        direction="positive",
        sample_size=len(delayed),
        p_value=0.05,
        description=(
            f"You typically log outcomes {avg_delay:.0f} days after the decision, suggesting "
            "you underestimate how long decisions take to resolve"
        ),
        decision_ids=_decision_ids([p for p, _ in delayed]),
    )


def detect_recency_bias(pairs: Sequence[PredictionPair]) -> Optional[BiasFinding]:
    """Recent predictions markedly worse than the ones just before them.

    With a perfect older window (MAE 0) any recent error counts as a full
    increase (ratio 1.0); two perfect windows show no bias.
    """
    if len(pairs) < RECENCY_MIN_PAIRS:
        return None

    recent = pairs[:RECENCY_WINDOW]
    older = pairs[RECENCY_WINDOW:2 * RECENCY_WINDOW]
    recent_mae = _mean_abs_error(recent)
    older_mae = _mean_abs_error(older)

    if older_mae == 0:
        if recent_mae == 0:
            return None
        increase = 1.0
    else:
        increase = (recent_mae - older_mae) / older_mae

    if increase <= RECENCY_INCREASE_THRESHOLD:
        return None

    return BiasFinding(
        bias_type=BiasType.RECENCY,
        magnitude=min(increase, 1.0),
        direction="positive",
        sample_size=len(pairs),
        p_value=0.05,
        description=(
            f"Your recent predictions are {round(increase * 100)}% less accurate than older ones, "
            "suggesting you may be over-weighting recent experiences"
        ),
        decision_ids=_decision_ids(recent),
    )


def build_bias_insight(finding: BiasFinding) -> InsightDraft:
    return InsightDraft(
        insight_type=InsightType.BIAS_DETECTION,
        title=BIAS_TITLES.get(finding.bias_type, "Cognitive Bias Detected"),
        description=finding.description,
        priority=bias_priority(finding.magnitude),
        is_actionable=True,
        action_label="Learn More",
        metadata=BiasMetadata(
            bias_type=finding.bias_type,
            magnitude=finding.magnitude,
            direction=finding.direction,
            sample_size=finding.sample_size,
            p_value=finding.p_value,
            decision_ids=finding.decision_ids,
        ),
    )


class BiasEngine:
    """Runs the bias detectors and stores one insight per finding."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        history_limit: int = settings.insight_history_limit,
    ):
        self.session_factory = session_factory
        self.history_limit = history_limit

    async def analyze(self, session: AsyncSession) -> list[BiasFinding]:
        pairs = await get_prediction_pairs(session, self.history_limit)
        if len(pairs) < MIN_PAIRS:
            logger.debug("bias_insufficient_data", pairs=len(pairs), required=MIN_PAIRS)
            return []

        findings = [
            finding
            for finding in (
                detect_prediction_bias(pairs),
                detect_planning_fallacy(pairs),
                detect_recency_bias(pairs),
            )
            if finding is not None
        ]
        logger.info(
            "biases_analyzed",
            pairs=len(pairs),
            detected=[f.bias_type.value for f in findings],
        )
        return findings

    async def detect_biases(self) -> list[Insight]:
        async with self.session_factory() as session:
            findings = await self.analyze(session)
        if not findings:
            return []

        drafts = [build_bias_insight(f) for f in findings]
        async with self.session_factory.begin() as session:
            return await insight_repo.create_from_drafts(session, drafts)
