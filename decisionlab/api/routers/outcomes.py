"""
Outcome API Endpoints.

POST /api/v1/decisions/{id}/outcome   — log an outcome; returns insights + gamification
"""

import uuid

from fastapi import APIRouter, Depends, status

from decisionlab.api.deps import get_outcome_service
from decisionlab.outcomes.schemas import OutcomeCreate, OutcomeLogResult
from decisionlab.outcomes.service import OutcomeService

router = APIRouter(prefix="/api/v1/decisions", tags=["outcomes"])


@router.post(
    "/{decision_id}/outcome",
    response_model=OutcomeLogResult,
    status_code=status.HTTP_201_CREATED,
)
async def log_outcome(
    decision_id: uuid.UUID,
    body: OutcomeCreate,
    service: OutcomeService = Depends(get_outcome_service),
):
    """
    Log what actually happened.

    Insight generation and the gamification update both run; the request
    succeeds even if gamification fails (its block is then null).
    """
    return await service.log_outcome(
        decision_id,
        actual_satisfaction=body.actual_satisfaction,
        surprise_factor=body.surprise_factor,
        notes=body.notes,
        log_source=body.log_source,
        logged_at=body.logged_at,
    )
