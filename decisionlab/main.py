"""
DecisionLab — FastAPI Application.

Entry point for the API server.
Run: uvicorn decisionlab.main:app --host 0.0.0.0 --port 8000 --reload

  - /api/v1/decisions/*      ← decision models, recommendation, outcomes
  - /api/v1/options/*        ← scores and utility breakdown
  - /api/v1/insights/*       ← insight feed
  - /api/v1/gamification/*   ← streaks, badges, milestones
  - GET /health              ← liveness
  - GET /ready               ← readiness (database)
  - GET /metrics             ← Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from decisionlab.config import settings
from decisionlab.db.engine import close_db, get_db_session, init_db
from decisionlab.logging_config import configure_logging
from decisionlab.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from decisionlab.middleware.request_context import RequestContextMiddleware

from decisionlab.api.routers.decisions import router as decisions_router
from decisionlab.api.routers.gamification import router as gamification_router
from decisionlab.api.routers.insights import router as insights_router
from decisionlab.api.routers.metrics import router as metrics_router
from decisionlab.api.routers.options import router as options_router
from decisionlab.api.routers.outcomes import router as outcomes_router

logger = structlog.get_logger(__name__)

READY_TIMEOUT_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    configure_logging()
    logger.info("decisionlab_starting", version=settings.app_version, env=settings.environment)
    await init_db()
    yield
    await close_db()
    logger.info("decisionlab_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Decision modelling with weighted factors, outcome tracking and "
            "personal insights about how you decide."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness and readiness probes"},
            {"name": "decisions", "description": "Decision models and MAUT recommendations"},
            {"name": "options", "description": "Factor scores and utility breakdowns"},
            {"name": "outcomes", "description": "Outcome logging"},
            {"name": "insights", "description": "Insight feed"},
            {"name": "gamification", "description": "Streaks, badges and milestones"},
            {"name": "observability", "description": "Prometheus metrics"},
        ],
    )

    # ── Middleware (last added = outermost) ──
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────
    app.include_router(decisions_router)     # /api/v1/decisions/*
    app.include_router(options_router)       # /api/v1/options/*
    app.include_router(outcomes_router)      # POST /api/v1/decisions/{id}/outcome
    app.include_router(insights_router)      # /api/v1/insights/*
    app.include_router(gamification_router)  # /api/v1/gamification/*
    app.include_router(metrics_router)       # GET /metrics

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness probe. Does not touch the database."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "service": "decisionlab",
        }

    @app.get("/ready", tags=["health"])
    async def readiness():
        """Readiness probe: 200 when the database answers, 503 otherwise."""
        try:
            async with get_db_session() as session:
                await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=READY_TIMEOUT_SECONDS)
            database = "ok"
        except Exception as e:
            logger.warning("readiness_database_unavailable", error=str(e))
            database = "unavailable"

        ready = database == "ok"
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"status": "ready" if ready else "not_ready", "checks": {"database": database}},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "decisionlab.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
