"""
Option API Endpoints.

PUT /api/v1/options/{id}/scores/{factor_id}   — record or replace a factor score
GET /api/v1/options/{id}/breakdown            — per-factor utility contributions
"""

import uuid

from fastapi import APIRouter, Depends

from decisionlab.api.deps import get_decision_service, get_utility_engine
from decisionlab.decisions.schemas import ScoreResponse, ScoreUpdate
from decisionlab.decisions.service import DecisionService
from decisionlab.utility.engine import UtilityEngine
from decisionlab.utility.schemas import UtilityBreakdown

router = APIRouter(prefix="/api/v1/options", tags=["options"])


@router.put("/{option_id}/scores/{factor_id}", response_model=ScoreResponse)
async def set_score(
    option_id: uuid.UUID,
    factor_id: uuid.UUID,
    body: ScoreUpdate,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.set_score(option_id, factor_id, body.score, body.confidence)


@router.get("/{option_id}/breakdown", response_model=UtilityBreakdown)
async def get_breakdown(
    option_id: uuid.UUID,
    engine: UtilityEngine = Depends(get_utility_engine),
):
    return await engine.get_utility_breakdown(option_id)
