"""
Utility Engine — weighted-additive (MAUT) scoring of decision options.

Pipeline for compute_recommendation():
1. Load the decision's live options, factors and scores
2. Validate the structure (≥2 options, ≥1 factor, weights sum to 1.0 ± 0.01)
3. Compute each option's utility Σ weight · (score − 1) / 4
4. Rank (stable: ties keep display/creation order)
5. Score confidence: completeness + decisiveness + factor count
6. Flag uncertain factors and build the recommendation text
7. Cache computed_utility on every option

Missing scores count as the neutral 3 (normalized 0.5). That is a data
policy, not an error.
"""

import uuid
from typing import Iterable, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.models import Decision, Factor, FactorScore, Option
from decisionlab.errors import NotFoundError, ValidationError
from decisionlab.utility.schemas import (
    ConfidenceBreakdown,
    FactorContribution,
    RankedOption,
    Recommendation,
    UtilityBreakdown,
)

logger = structlog.get_logger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5
DEFAULT_SCORE = 3
WEIGHT_TOLERANCE = 0.01
MIN_OPTIONS = 2
MIN_FACTORS = 1

UNCERTAIN_VARIANCE = 0.5
CLOSE_RACE_POINTS = 10
STRONG_CONFIDENCE = 80
MODERATE_CONFIDENCE = 60

# (gap above, points): first match wins
DECISIVENESS_TIERS = [(0.2, 40.0), (0.1, 30.0), (0.05, 20.0)]
DECISIVENESS_FLOOR = 10.0
COMPLETENESS_POINTS = 40.0


# ── Pure scoring helpers ──────────────────────────────────────────────


def normalize_score(score: int) -> float:
    """Map a 1–5 Likert score onto [0, 1]."""
    return (score - MIN_SCORE) / (MAX_SCORE - MIN_SCORE)


def validate_structure(option_count: int, weights: Sequence[float]) -> list[str]:
    """Every violated structural rule, in a fixed order."""
    errors = []
    if option_count < MIN_OPTIONS:
        errors.append(f"Decision must have at least {MIN_OPTIONS} options")
    if len(weights) < MIN_FACTORS:
        errors.append(f"Decision must have at least {MIN_FACTORS} factor")
    total = sum(weights)
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        errors.append(f"Factor weights must sum to 1.0 (current: {total:.2f})")
    return errors


def option_contributions(
    factors: Sequence[Factor], scores: dict[uuid.UUID, int]
) -> list[FactorContribution]:
    """Per-factor contribution for one option; scores maps factor id → score."""
    rows = []
    for factor in factors:
        recorded = scores.get(factor.id)
        score = DEFAULT_SCORE if recorded is None else recorded
        normalized = normalize_score(score)
        rows.append(FactorContribution(
            factor_id=factor.id,
            factor_name=factor.name,
            weight=factor.weight,
            score=score,
            normalized_score=normalized,
            contribution=factor.weight * normalized,
            is_default=recorded is None,
        ))
    return rows


def completeness_points(filled: int, needed: int) -> float:
    if needed <= 0 or filled >= needed:
        return COMPLETENESS_POINTS
    return filled / needed * COMPLETENESS_POINTS


def decisiveness_points(utilities: Iterable[float]) -> float:
    """Points for the gap between the two best utilities."""
    ordered = sorted(utilities, reverse=True)
    if len(ordered) < 2:
        return DECISIVENESS_TIERS[0][1]
    gap = ordered[0] - ordered[1]
    for threshold, points in DECISIVENESS_TIERS:
        if gap > threshold:
            return points
    return DECISIVENESS_FLOOR


def factor_count_points(factor_count: int) -> float:
    # 5-7 criteria is the sweet spot
    if 5 <= factor_count <= 7:
        return 20.0
    if 3 <= factor_count <= 10:
        return 15.0
    return 10.0


def calculate_confidence(
    utilities: Sequence[float], filled: int, needed: int, factor_count: int
) -> tuple[int, ConfidenceBreakdown]:
    """0-100 confidence plus the components it was built from."""
    breakdown = ConfidenceBreakdown(
        completeness=completeness_points(filled, needed),
        decisiveness=decisiveness_points(utilities),
        factor_count=factor_count_points(factor_count),
    )
    total = breakdown.completeness + breakdown.decisiveness + breakdown.factor_count
    return round(min(total, 100)), breakdown


def score_variance(scores: Sequence[int]) -> float:
    """Population variance; fewer than two scores gives 0."""
    if len(scores) < 2:
        return 0.0
    mean = sum(scores) / len(scores)
    return sum((s - mean) ** 2 for s in scores) / len(scores)


def rank_options(utilities: Sequence[tuple[Option, float]]) -> list[RankedOption]:
    """Descending by utility. sorted() is stable, so ties keep input order."""
    ordered = sorted(utilities, key=lambda pair: -pair[1])
    return [
        RankedOption(
            id=option.id,
            name=option.name,
            utility=utility,
            utility_percentage=round(utility * 100),
            rank=index + 1,
        )
        for index, (option, utility) in enumerate(ordered)
    ]


def build_recommendation_text(
    ranked: Sequence[RankedOption], confidence: int, is_fully_scored: bool
) -> list[str]:
    top = ranked[0]
    lines = []
    if confidence >= STRONG_CONFIDENCE:
        lines.append(
            f'Strong recommendation: Choose "{top.name}" ({top.utility_percentage}% utility score)'
        )
    elif confidence >= MODERATE_CONFIDENCE:
        lines.append(
            f'Moderate recommendation: "{top.name}" appears to be the best choice '
            f"({top.utility_percentage}% utility)"
        )
    else:
        lines.append(
            f'Weak recommendation: "{top.name}" has the highest utility '
            f"({top.utility_percentage}%), but confidence is low"
        )

    if not is_fully_scored:
        lines.append("Tip: Score all factors for all options to increase recommendation confidence")

    if len(ranked) >= 2:
        gap = top.utility_percentage - ranked[1].utility_percentage
        if gap < CLOSE_RACE_POINTS:
            lines.append(
                f'Close race: "{top.name}" and "{ranked[1].name}" are very similar ({gap}% difference)'
            )
    return lines


# ── Engine ────────────────────────────────────────────────────────────


class UtilityEngine:
    """
    Computes recommendations for stored decisions.

    Reads and the computed_utility cache write share one transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def compute_recommendation(self, decision_id: uuid.UUID) -> Recommendation:
        """Rank a decision's options. Raises ValidationError on a malformed decision."""
        async with self.session_factory.begin() as session:
            # ── 1. Load ─────────────────────────────────────────────────
            await self._get_decision(session, decision_id)
            options = await self._get_options(session, decision_id)
            factors = await self._get_factors(session, decision_id)

            # ── 2. Validate ─────────────────────────────────────────────
            errors = validate_structure(len(options), [f.weight for f in factors])
            if errors:
                logger.info(
                    "recommendation_rejected",
                    decision_id=str(decision_id),
                    errors=errors,
                )
                raise ValidationError(errors)

            scores = await self._get_scores(session, options, factors)

            # ── 3. Utilities ────────────────────────────────────────────
            utilities = []
            for option in options:
                contributions = option_contributions(factors, scores.get(option.id, {}))
                utilities.append((option, sum(c.contribution for c in contributions)))

            # ── 4. Rank ─────────────────────────────────────────────────
            ranked = rank_options(utilities)

            # ── 5. Confidence ───────────────────────────────────────────
            filled = sum(len(by_factor) for by_factor in scores.values())
            needed = len(options) * len(factors)
            confidence, breakdown = calculate_confidence(
                [u for _, u in utilities], filled, needed, len(factors)
            )
            is_fully_scored = filled >= needed

            # ── 6. Uncertain factors + text ─────────────────────────────
            uncertain = [
                f.name for f in factors
                if score_variance([
                    by_factor[f.id] for by_factor in scores.values() if f.id in by_factor
                ]) < UNCERTAIN_VARIANCE
            ]
            text = build_recommendation_text(ranked, confidence, is_fully_scored)

            # ── 7. Cache ────────────────────────────────────────────────
            for option, utility in utilities:
                option.computed_utility = utility

        logger.info(
            "recommendation_computed",
            decision_id=str(decision_id),
            top_option=ranked[0].name,
            top_utility=round(ranked[0].utility, 4),
            confidence=confidence,
            fully_scored=is_fully_scored,
        )

        return Recommendation(
            decision_id=decision_id,
            top_option=ranked[0],
            options=ranked,
            confidence=confidence,
            confidence_breakdown=breakdown,
            uncertain_factors=uncertain,
            is_fully_scored=is_fully_scored,
            recommendations=text,
        )

    async def get_utility_breakdown(self, option_id: uuid.UUID) -> UtilityBreakdown:
        """Per-factor contributions for one option."""
        async with self.session_factory() as session:
            option = await session.get(Option, option_id)
            if option is None or option.is_deleted:
                raise NotFoundError("Option", option_id)
            factors = await self._get_factors(session, option.decision_id)
            scores = await self._get_scores(session, [option], factors)

        contributions = option_contributions(factors, scores.get(option.id, {}))
        return UtilityBreakdown(
            option_id=option.id,
            option_name=option.name,
            utility=sum(c.contribution for c in contributions),
            factors=contributions,
        )

    # ── Loading ───────────────────────────────────────────────────────

    async def _get_decision(self, session: AsyncSession, decision_id: uuid.UUID) -> Decision:
        decision = await session.get(Decision, decision_id)
        if decision is None or decision.is_deleted:
            raise NotFoundError("Decision", decision_id)
        return decision

    async def _get_options(self, session: AsyncSession, decision_id: uuid.UUID) -> list[Option]:
        result = await session.execute(
            select(Option)
            .where(Option.decision_id == decision_id, Option.is_deleted.is_(False))
            .order_by(Option.display_order, Option.created_at)
        )
        return list(result.scalars().all())

    async def _get_factors(self, session: AsyncSession, decision_id: uuid.UUID) -> list[Factor]:
        result = await session.execute(
            select(Factor)
            .where(Factor.decision_id == decision_id, Factor.is_deleted.is_(False))
            .order_by(Factor.display_order, Factor.created_at)
        )
        return list(result.scalars().all())

    async def _get_scores(
        self,
        session: AsyncSession,
        options: Sequence[Option],
        factors: Sequence[Factor],
    ) -> dict[uuid.UUID, dict[uuid.UUID, int]]:
        """option id → factor id → score, restricted to this decision's pairs."""
        if not options or not factors:
            return {}
        result = await session.execute(
            select(FactorScore.option_id, FactorScore.factor_id, FactorScore.score).where(
                FactorScore.option_id.in_([o.id for o in options]),
                FactorScore.factor_id.in_([f.id for f in factors]),
            )
        )
        scores: dict[uuid.UUID, dict[uuid.UUID, int]] = {}
        for option_id, factor_id, score in result.all():
            scores.setdefault(option_id, {})[factor_id] = score
        return scores
