"""
Insight API Endpoints.

GET  /api/v1/insights/unread              — unread feed (priority, then newest)
POST /api/v1/insights/{id}/read           — mark read
POST /api/v1/insights/{id}/dismiss        — hide from the feed
POST /api/v1/insights/{id}/undismiss      — restore to the feed
GET  /api/v1/decisions/{id}/insights      — insights referencing a decision
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from decisionlab.api.deps import get_orchestrator
from decisionlab.db.models import utcnow
from decisionlab.insights.orchestrator import InsightOrchestrator
from decisionlab.insights.schemas import InsightResponse

router = APIRouter(prefix="/api/v1", tags=["insights"])


@router.get("/insights/unread", response_model=list[InsightResponse])
async def get_unread(
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    now = utcnow()
    return [InsightResponse.from_model(i, now) for i in await orchestrator.get_unread_insights(limit)]


@router.post("/insights/{insight_id}/read", response_model=InsightResponse)
async def mark_read(
    insight_id: uuid.UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    return InsightResponse.from_model(await orchestrator.mark_insight_as_read(insight_id), utcnow())


@router.post("/insights/{insight_id}/dismiss", response_model=InsightResponse)
async def dismiss(
    insight_id: uuid.UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    return InsightResponse.from_model(await orchestrator.dismiss_insight(insight_id), utcnow())


@router.post("/insights/{insight_id}/undismiss", response_model=InsightResponse)
async def undismiss(
    insight_id: uuid.UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    return InsightResponse.from_model(await orchestrator.undismiss_insight(insight_id), utcnow())


@router.get("/decisions/{decision_id}/insights", response_model=list[InsightResponse])
async def get_for_decision(
    decision_id: uuid.UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    now = utcnow()
    return [
        InsightResponse.from_model(i, now)
        for i in await orchestrator.get_insights_for_decision(decision_id)
    ]
