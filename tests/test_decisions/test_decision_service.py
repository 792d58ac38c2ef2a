"""
Decision Service Tests.

Covers creation (with validation and the gamification event), lifecycle
transitions, soft delete, score upserts, weight normalization and the
complexity check.
"""

import uuid

import pytest

from decisionlab.db.repositories.user_stats import read_user_stat
from decisionlab.decisions.schemas import DecisionCreate, DecisionStatus
from decisionlab.decisions.service import DecisionService, complexity_report
from decisionlab.errors import NotFoundError, ValidationError
from decisionlab.utility.engine import UtilityEngine


def _payload(**overrides) -> DecisionCreate:
    data = {
        "title": "Which job offer?",
        "factors": [
            {"name": "Salary", "weight": 0.5},
            {"name": "Commute", "weight": 0.3, "preference": "lower_is_better"},
            {"name": "Team", "weight": 0.2},
        ],
        "options": [
            {"name": "Startup", "predicted_satisfaction": 7.5},
            {"name": "Bank", "predicted_satisfaction": 6.0},
        ],
        "scores": [
            {"option_index": 0, "factor_index": 0, "score": 3},
            {"option_index": 0, "factor_index": 2, "score": 5, "confidence": 0.8},
            {"option_index": 1, "factor_index": 0, "score": 5},
        ],
    }
    data.update(overrides)
    return DecisionCreate.model_validate(data)


class FailingTracker:
    async def record_decision(self):
        raise RuntimeError("tracker down")


# ── Creation ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_decision(session_factory):
    created = await DecisionService(session_factory).create_decision(_payload())
    decision = created.decision

    assert decision.status == DecisionStatus.ACTIVE
    assert [f.name for f in decision.factors] == ["Salary", "Commute", "Team"]
    assert [f.display_order for f in decision.factors] == [0, 1, 2]
    assert decision.factors[1].preference == "lower_is_better"
    assert [o.name for o in decision.options] == ["Startup", "Bank"]
    assert decision.options[0].satisfaction_label == "High"
    assert len(decision.options[0].scores) == 2
    assert len(decision.options[1].scores) == 1

    assert [b.id for b in created.gamification.new_badges] == ["first_decision"]
    assert (await read_user_stat(session_factory)).total_decisions == 1


@pytest.mark.asyncio
async def test_created_decision_is_scorable(session_factory):
    """Startup: 0.5·0.5 + 0.3·0.5 + 0.2·1 = 0.6; Bank: 0.5 + 0.15 + 0.1 = 0.75."""
    created = await DecisionService(session_factory).create_decision(_payload())
    rec = await UtilityEngine(session_factory).compute_recommendation(created.decision.id)

    assert rec.top_option.name == "Bank"
    assert rec.options[0].utility == pytest.approx(0.75)
    assert rec.options[1].utility == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_create_rejects_every_bad_value(session_factory):
    payload = _payload(
        factors=[{"name": "Salary", "weight": 1.5}],
        options=[{"name": "Startup", "predicted_satisfaction": 11}],
        scores=[
            {"option_index": 0, "factor_index": 0, "score": 7, "confidence": 2.0},
            {"option_index": 3, "factor_index": 0, "score": 3},
        ],
    )
    with pytest.raises(ValidationError) as exc_info:
        await DecisionService(session_factory).create_decision(payload)

    errors = exc_info.value.errors
    assert len(errors) == 5
    assert any("weight must be between 0 and 1" in e for e in errors)
    assert any("predicted satisfaction" in e for e in errors)
    assert any("score must be between 1 and 5" in e for e in errors)
    assert any("confidence must be between 0 and 1" in e for e in errors)
    assert any("unknown option or factor" in e for e in errors)
    assert (await read_user_stat(session_factory)).total_decisions == 0


@pytest.mark.asyncio
async def test_duplicate_initial_score_rejected(session_factory):
    payload = _payload(scores=[
        {"option_index": 0, "factor_index": 0, "score": 3},
        {"option_index": 0, "factor_index": 0, "score": 4},
    ])
    with pytest.raises(ValidationError, match="duplicate score"):
        await DecisionService(session_factory).create_decision(payload)


@pytest.mark.asyncio
async def test_tracker_failure_keeps_decision(session_factory):
    service = DecisionService(session_factory, tracker=FailingTracker())
    created = await service.create_decision(_payload())

    assert created.gamification is None
    assert (await service.get_decision(created.decision.id)).title == "Which job offer?"


# ── Lifecycle ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_complete_flags_selected_option(session_factory):
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload())).decision
    chosen = decision.options[1].id

    completed = await service.complete(decision.id, chosen)

    assert completed.status == DecisionStatus.COMPLETED
    assert completed.selected_option_id == chosen
    assert completed.decision_date is not None
    assert [o.is_selected for o in completed.options] == [False, True]


@pytest.mark.asyncio
async def test_complete_rejects_foreign_option(session_factory):
    service = DecisionService(session_factory)
    first = (await service.create_decision(_payload())).decision
    second = (await service.create_decision(_payload(title="Other"))).decision

    with pytest.raises(ValidationError, match="does not belong"):
        await service.complete(first.id, second.options[0].id)


@pytest.mark.asyncio
async def test_archive_and_reactivate(session_factory):
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload())).decision

    assert (await service.archive(decision.id)).status == DecisionStatus.ARCHIVED
    assert (await service.reactivate(decision.id)).status == DecisionStatus.ACTIVE


@pytest.mark.asyncio
async def test_soft_deleted_decision_disappears(session_factory):
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload())).decision
    await service.soft_delete(decision.id)

    with pytest.raises(NotFoundError):
        await service.get_decision(decision.id)
    with pytest.raises(NotFoundError):
        await UtilityEngine(session_factory).compute_recommendation(decision.id)


# ── Structure edits ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_set_score_upserts(session_factory):
    """One score per (option, factor): the second write replaces the first."""
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload(scores=[]))).decision
    option, factor = decision.options[0], decision.factors[0]

    first = await service.set_score(option.id, factor.id, 2)
    second = await service.set_score(option.id, factor.id, 4, confidence=0.9)

    assert first.id == second.id
    assert second.score == 4
    reloaded = await service.get_decision(decision.id)
    assert [(s.score, s.confidence) for s in reloaded.options[0].scores] == [(4, 0.9)]


@pytest.mark.asyncio
async def test_set_score_validation(session_factory):
    service = DecisionService(session_factory)
    first = (await service.create_decision(_payload())).decision
    second = (await service.create_decision(_payload(title="Other"))).decision

    with pytest.raises(ValidationError, match="score must be between"):
        await service.set_score(first.options[0].id, first.factors[0].id, 0)
    with pytest.raises(ValidationError, match="different decisions"):
        await service.set_score(first.options[0].id, second.factors[0].id, 3)
    with pytest.raises(NotFoundError):
        await service.set_score(uuid.uuid4(), first.factors[0].id, 3)


@pytest.mark.asyncio
async def test_normalize_weights(session_factory):
    service = DecisionService(session_factory)
    payload = _payload(
        factors=[{"name": "Salary", "weight": 0.6}, {"name": "Team", "weight": 0.6}],
        scores=[],
    )
    decision = (await service.create_decision(payload)).decision

    factors = await service.normalize_weights(decision.id)

    assert [f.weight for f in factors] == pytest.approx([0.5, 0.5])
    await UtilityEngine(session_factory).compute_recommendation(decision.id)


@pytest.mark.asyncio
async def test_normalize_leaves_valid_weights(session_factory):
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload())).decision
    factors = await service.normalize_weights(decision.id)
    assert [f.weight for f in factors] == [0.5, 0.3, 0.2]


class TestComplexity:

    def test_too_few_options(self):
        report = complexity_report(1, 3)
        assert not report.valid
        assert report.errors == ["Decision must have at least 2 options"]

    def test_no_factors(self):
        assert not complexity_report(2, 0).valid

    def test_too_many_factors(self):
        report = complexity_report(3, 11)
        assert report.errors == ["Maximum 10 factors allowed (cognitive load limit)"]

    def test_warnings(self):
        report = complexity_report(5, 8)
        assert report.valid
        assert len(report.warnings) == 2

    def test_comfortable(self):
        report = complexity_report(3, 6)
        assert report.valid and report.warnings == []


@pytest.mark.asyncio
async def test_validate_complexity_uses_stored_structure(session_factory):
    service = DecisionService(session_factory)
    decision = (await service.create_decision(_payload())).decision
    report = await service.validate_complexity(decision.id)
    assert report.valid
    assert report.warnings == []
