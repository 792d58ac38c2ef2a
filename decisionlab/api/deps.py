"""
FastAPI dependencies.

Every service is built per request on top of the store (the session
factory). Tests override get_store to point the whole API at an isolated
database.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.engine import get_session_factory
from decisionlab.decisions.service import DecisionService
from decisionlab.gamification.tracker import GamificationTracker
from decisionlab.insights.orchestrator import InsightOrchestrator
from decisionlab.outcomes.service import OutcomeService
from decisionlab.utility.engine import UtilityEngine


def get_store() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_tracker(store: async_sessionmaker[AsyncSession] = Depends(get_store)) -> GamificationTracker:
    return GamificationTracker(store)


def get_orchestrator(
    store: async_sessionmaker[AsyncSession] = Depends(get_store),
    tracker: GamificationTracker = Depends(get_tracker),
) -> InsightOrchestrator:
    return InsightOrchestrator(store, tracker=tracker)


def get_utility_engine(store: async_sessionmaker[AsyncSession] = Depends(get_store)) -> UtilityEngine:
    return UtilityEngine(store)


def get_decision_service(
    store: async_sessionmaker[AsyncSession] = Depends(get_store),
    tracker: GamificationTracker = Depends(get_tracker),
) -> DecisionService:
    return DecisionService(store, tracker=tracker)


def get_outcome_service(
    store: async_sessionmaker[AsyncSession] = Depends(get_store),
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
    tracker: GamificationTracker = Depends(get_tracker),
) -> OutcomeService:
    return OutcomeService(store, orchestrator=orchestrator, tracker=tracker)
