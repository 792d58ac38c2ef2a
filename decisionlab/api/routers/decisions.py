"""
Decision API Endpoints.

POST   /api/v1/decisions                            — create decision (+ factors, options, scores)
GET    /api/v1/decisions/{id}                       — get decision
POST   /api/v1/decisions/{id}/complete              — complete with a selected option
POST   /api/v1/decisions/{id}/archive               — archive
POST   /api/v1/decisions/{id}/reactivate            — back to active
DELETE /api/v1/decisions/{id}                       — soft delete
GET    /api/v1/decisions/{id}/recommendation        — MAUT recommendation (422 if malformed)
GET    /api/v1/decisions/{id}/complexity            — cognitive-load check
POST   /api/v1/decisions/{id}/normalize-weights     — rescale weights to sum to 1.0
"""

import uuid

from fastapi import APIRouter, Depends, status

from decisionlab.api.deps import get_decision_service, get_utility_engine
from decisionlab.decisions.schemas import (
    CompleteRequest,
    ComplexityReport,
    DecisionCreate,
    DecisionCreated,
    DecisionResponse,
    FactorResponse,
)
from decisionlab.decisions.service import DecisionService
from decisionlab.utility.engine import UtilityEngine
from decisionlab.utility.schemas import Recommendation

router = APIRouter(prefix="/api/v1/decisions", tags=["decisions"])


@router.post("", response_model=DecisionCreated, status_code=status.HTTP_201_CREATED)
async def create_decision(
    body: DecisionCreate,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.create_decision(body)


@router.get("/{decision_id}", response_model=DecisionResponse)
async def get_decision(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.get_decision(decision_id)


@router.post("/{decision_id}/complete", response_model=DecisionResponse)
async def complete_decision(
    decision_id: uuid.UUID,
    body: CompleteRequest,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.complete(decision_id, body.selected_option_id)


@router.post("/{decision_id}/archive", response_model=DecisionResponse)
async def archive_decision(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.archive(decision_id)


@router.post("/{decision_id}/reactivate", response_model=DecisionResponse)
async def reactivate_decision(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.reactivate(decision_id)


@router.delete("/{decision_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_decision(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    """Soft delete: the decision disappears from every lookup but is never purged."""
    await service.soft_delete(decision_id)


@router.get("/{decision_id}/recommendation", response_model=Recommendation)
async def get_recommendation(
    decision_id: uuid.UUID,
    engine: UtilityEngine = Depends(get_utility_engine),
):
    return await engine.compute_recommendation(decision_id)


@router.get("/{decision_id}/complexity", response_model=ComplexityReport)
async def get_complexity(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.validate_complexity(decision_id)


@router.post("/{decision_id}/normalize-weights", response_model=list[FactorResponse])
async def normalize_weights(
    decision_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
):
    return await service.normalize_weights(decision_id)
