"""
Decision Service — creation and lifecycle of decisions.

Operations:
- create_decision: decision + factors + options + initial scores, one transaction
- complete / archive / reactivate / soft_delete
- set_score: upsert the single score of an (option, factor) pair
- normalize_weights: proportional rescale when weights drift off 1.0
- validate_complexity: cognitive-load limits (7 ± 2 factors, ≤ 4 options)

Decisions are never hard-deleted.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.models import Decision, Factor, FactorScore, Option, utcnow
from decisionlab.decisions.schemas import (
    ComplexityReport,
    DecisionCreate,
    DecisionCreated,
    DecisionResponse,
    DecisionStatus,
    FactorResponse,
    OptionResponse,
    ScoreResponse,
)
from decisionlab.errors import NotFoundError, ValidationError
from decisionlab.gamification.tracker import GamificationTracker
from decisionlab.utility.engine import MAX_SCORE, MIN_SCORE, WEIGHT_TOLERANCE

logger = structlog.get_logger(__name__)

MAX_FACTORS = 10
COMFORTABLE_FACTORS = 7
COMFORTABLE_OPTIONS = 4


def _check_score(score: int, confidence: Optional[float], label: str) -> list[str]:
    errors = []
    if not MIN_SCORE <= score <= MAX_SCORE:
        errors.append(f"{label}: score must be between {MIN_SCORE} and {MAX_SCORE} (got {score})")
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        errors.append(f"{label}: confidence must be between 0 and 1 (got {confidence})")
    return errors


def validate_create_payload(payload: DecisionCreate) -> list[str]:
    """Range and reference checks for a new decision."""
    errors = []
    for factor in payload.factors:
        if not 0.0 <= factor.weight <= 1.0:
            errors.append(f"Factor '{factor.name}': weight must be between 0 and 1 (got {factor.weight})")
    for option in payload.options:
        p = option.predicted_satisfaction
        if p is not None and not 0.0 <= p <= 10.0:
            errors.append(f"Option '{option.name}': predicted satisfaction must be between 0 and 10 (got {p})")

    seen = set()
    for s in payload.scores:
        label = f"Score [{s.option_index}, {s.factor_index}]"
        if s.option_index >= len(payload.options) or s.factor_index >= len(payload.factors):
            errors.append(f"{label}: references an unknown option or factor")
            continue
        if (s.option_index, s.factor_index) in seen:
            errors.append(f"{label}: duplicate score for the same option and factor")
        seen.add((s.option_index, s.factor_index))
        errors.extend(_check_score(s.score, s.confidence, label))
    return errors


def complexity_report(option_count: int, factor_count: int) -> ComplexityReport:
    if option_count < 2:
        return ComplexityReport(valid=False, errors=["Decision must have at least 2 options"])
    if factor_count == 0:
        return ComplexityReport(valid=False, errors=["Decision must have at least 1 factor"])
    if factor_count > MAX_FACTORS:
        return ComplexityReport(
            valid=False,
            errors=[f"Maximum {MAX_FACTORS} factors allowed (cognitive load limit)"],
        )

    warnings = []
    if factor_count > COMFORTABLE_FACTORS:
        warnings.append(
            f"You have {factor_count} factors. Consider consolidating to 5-7 for easier comparison."
        )
    if option_count > COMFORTABLE_OPTIONS:
        warnings.append("More than 4 options can be overwhelming. Consider narrowing down.")
    return ComplexityReport(valid=True, warnings=warnings)


def _option_response(option: Option, scores: list[FactorScore]) -> OptionResponse:
    return OptionResponse(
        id=option.id,
        name=option.name,
        description=option.description,
        display_order=option.display_order,
        computed_utility=option.computed_utility,
        utility_percentage=option.utility_percentage,
        predicted_satisfaction=option.predicted_satisfaction,
        satisfaction_label=option.satisfaction_label,
        is_selected=option.is_selected,
        scores=[ScoreResponse.model_validate(s) for s in scores],
    )


class DecisionService:
    """Decision CRUD and lifecycle over the store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tracker: Optional[GamificationTracker] = None,
    ):
        self.session_factory = session_factory
        self.tracker = tracker or GamificationTracker(session_factory)

    # ── Loading ───────────────────────────────────────────────────────

    async def _get_decision(self, session: AsyncSession, decision_id: uuid.UUID) -> Decision:
        decision = await session.get(Decision, decision_id)
        if decision is None or decision.is_deleted:
            raise NotFoundError("Decision", decision_id)
        return decision

    async def _get_option(self, session: AsyncSession, option_id: uuid.UUID) -> Option:
        option = await session.get(Option, option_id)
        if option is None or option.is_deleted:
            raise NotFoundError("Option", option_id)
        return option

    async def _children(self, session: AsyncSession, decision_id: uuid.UUID):
        factors = (await session.execute(
            select(Factor)
            .where(Factor.decision_id == decision_id, Factor.is_deleted.is_(False))
            .order_by(Factor.display_order, Factor.created_at)
        )).scalars().all()
        options = (await session.execute(
            select(Option)
            .where(Option.decision_id == decision_id, Option.is_deleted.is_(False))
            .order_by(Option.display_order, Option.created_at)
        )).scalars().all()
        return list(factors), list(options)

    async def _to_response(self, session: AsyncSession, decision: Decision) -> DecisionResponse:
        factors, options = await self._children(session, decision.id)
        scores_by_option: dict[uuid.UUID, list[FactorScore]] = {o.id: [] for o in options}
        if options:
            result = await session.execute(
                select(FactorScore).where(FactorScore.option_id.in_(list(scores_by_option)))
            )
            for score in result.scalars().all():
                scores_by_option[score.option_id].append(score)

        return DecisionResponse(
            id=decision.id,
            title=decision.title,
            description=decision.description,
            status=decision.status,
            decision_method=decision.decision_method,
            source=decision.source,
            selected_option_id=decision.selected_option_id,
            created_at=decision.created_at,
            decision_date=decision.decision_date,
            factors=[FactorResponse.model_validate(f) for f in factors],
            options=[_option_response(o, scores_by_option[o.id]) for o in options],
        )

    async def get_decision(self, decision_id: uuid.UUID) -> DecisionResponse:
        async with self.session_factory() as session:
            decision = await self._get_decision(session, decision_id)
            return await self._to_response(session, decision)

    # ── Creation ──────────────────────────────────────────────────────

    async def create_decision(self, payload: DecisionCreate) -> DecisionCreated:
        """Persist a decision with its structure, then record the gamification event."""
        errors = validate_create_payload(payload)
        if errors:
            raise ValidationError(errors, subject="decision input")

        async with self.session_factory.begin() as session:
            decision = Decision(
                id=uuid.uuid4(),
                title=payload.title,
                description=payload.description,
                status=DecisionStatus.ACTIVE.value,
                decision_method=payload.decision_method,
                source=payload.source,
            )
            session.add(decision)
            await session.flush()

            factors = [
                Factor(
                    id=uuid.uuid4(),
                    decision_id=decision.id,
                    name=f.name,
                    description=f.description,
                    weight=f.weight,
                    preference=f.preference.value,
                    display_order=i,
                )
                for i, f in enumerate(payload.factors)
            ]
            options = [
                Option(
                    id=uuid.uuid4(),
                    decision_id=decision.id,
                    name=o.name,
                    description=o.description,
                    predicted_satisfaction=o.predicted_satisfaction,
                    display_order=i,
                )
                for i, o in enumerate(payload.options)
            ]
            session.add_all(factors + options)
            await session.flush()
            session.add_all([
                FactorScore(
                    id=uuid.uuid4(),
                    option_id=options[s.option_index].id,
                    factor_id=factors[s.factor_index].id,
                    score=s.score,
                    confidence=s.confidence,
                )
                for s in payload.scores
            ])
            await session.flush()
            response = await self._to_response(session, decision)

        logger.info(
            "decision_created",
            decision_id=str(response.id),
            factors=len(payload.factors),
            options=len(payload.options),
            scores=len(payload.scores),
        )

        gamification = None
        try:
            gamification = await self.tracker.record_decision()
        except Exception as e:
            logger.error(
                "decision_gamification_failed",
                decision_id=str(response.id),
                error=str(e),
                exc_info=True,
            )
        return DecisionCreated(decision=response, gamification=gamification)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def complete(self, decision_id: uuid.UUID, selected_option_id: uuid.UUID) -> DecisionResponse:
        """Mark completed with the chosen option; siblings are unflagged."""
        async with self.session_factory.begin() as session:
            decision = await self._get_decision(session, decision_id)
            _, options = await self._children(session, decision_id)
            if selected_option_id not in {o.id for o in options}:
                raise ValidationError(
                    [f"Option {selected_option_id} does not belong to decision {decision_id}"],
                    subject="selection",
                )
            for option in options:
                option.is_selected = option.id == selected_option_id
            decision.status = DecisionStatus.COMPLETED.value
            decision.selected_option_id = selected_option_id
            decision.decision_date = utcnow()
            await session.flush()
            response = await self._to_response(session, decision)

        logger.info("decision_completed", decision_id=str(decision_id), option_id=str(selected_option_id))
        return response

    async def _set_status(self, decision_id: uuid.UUID, status: DecisionStatus) -> DecisionResponse:
        async with self.session_factory.begin() as session:
            decision = await self._get_decision(session, decision_id)
            decision.status = status.value
            await session.flush()
            response = await self._to_response(session, decision)
        logger.info("decision_status_changed", decision_id=str(decision_id), status=status.value)
        return response

    async def archive(self, decision_id: uuid.UUID) -> DecisionResponse:
        return await self._set_status(decision_id, DecisionStatus.ARCHIVED)

    async def reactivate(self, decision_id: uuid.UUID) -> DecisionResponse:
        return await self._set_status(decision_id, DecisionStatus.ACTIVE)

    async def soft_delete(self, decision_id: uuid.UUID) -> None:
        async with self.session_factory.begin() as session:
            decision = await self._get_decision(session, decision_id)
            decision.is_deleted = True
        logger.info("decision_deleted", decision_id=str(decision_id))

    # ── Structure edits ───────────────────────────────────────────────

    async def set_score(
        self,
        option_id: uuid.UUID,
        factor_id: uuid.UUID,
        score: int,
        confidence: Optional[float] = None,
    ) -> ScoreResponse:
        """Record or replace the score of one option on one factor."""
        errors = _check_score(score, confidence, "Score")
        if errors:
            raise ValidationError(errors, subject="score")

        async with self.session_factory.begin() as session:
            option = await self._get_option(session, option_id)
            factor = await session.get(Factor, factor_id)
            if factor is None or factor.is_deleted:
                raise NotFoundError("Factor", factor_id)
            if factor.decision_id != option.decision_id:
                raise ValidationError(
                    ["Option and factor belong to different decisions"], subject="score"
                )

            result = await session.execute(
                select(FactorScore).where(
                    FactorScore.option_id == option_id, FactorScore.factor_id == factor_id
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = FactorScore(id=uuid.uuid4(), option_id=option_id, factor_id=factor_id, score=score)
                session.add(row)
            row.score = score
            row.confidence = confidence
            await session.flush()
            return ScoreResponse.model_validate(row)

    async def normalize_weights(self, decision_id: uuid.UUID) -> list[FactorResponse]:
        """Rescale weights proportionally when their sum is off 1.0 by more than the tolerance."""
        async with self.session_factory.begin() as session:
            await self._get_decision(session, decision_id)
            factors, _ = await self._children(session, decision_id)
            total = sum(f.weight for f in factors)
            if factors and total > 0 and abs(total - 1.0) > WEIGHT_TOLERANCE:
                for factor in factors:
                    factor.weight = factor.weight / total
                logger.info("weights_normalized", decision_id=str(decision_id), previous_total=round(total, 4))
            return [FactorResponse.model_validate(f) for f in factors]

    async def validate_complexity(self, decision_id: uuid.UUID) -> ComplexityReport:
        async with self.session_factory() as session:
            await self._get_decision(session, decision_id)
            factors, options = await self._children(session, decision_id)
        return complexity_report(len(options), len(factors))
