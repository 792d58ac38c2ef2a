"""
Gamification API Endpoints.

GET /api/v1/gamification/status   — counters, streak, next milestone, message
GET /api/v1/gamification/badges   — earned and locked badges
"""

from fastapi import APIRouter, Depends

from decisionlab.api.deps import get_tracker
from decisionlab.gamification.schemas import BadgeCollection, GamificationStatus
from decisionlab.gamification.tracker import GamificationTracker

router = APIRouter(prefix="/api/v1/gamification", tags=["gamification"])


@router.get("/status", response_model=GamificationStatus)
async def get_status(tracker: GamificationTracker = Depends(get_tracker)):
    return await tracker.get_status()


@router.get("/badges", response_model=BadgeCollection)
async def get_badges(tracker: GamificationTracker = Depends(get_tracker)):
    return await tracker.get_all_badges()
