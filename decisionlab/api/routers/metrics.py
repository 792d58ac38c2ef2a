"""
Prometheus Metrics Endpoint.

GET /metrics — insight pipeline counters and uptime in Prometheus text format.
"""

import time

import structlog
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from decisionlab.metrics import format_prometheus, get_insight_metrics

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["observability"])

_start_time = time.time()


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
)
async def prometheus_metrics():
    metrics: dict = {"uptime_seconds": round(time.time() - _start_time, 1)}
    metrics.update(get_insight_metrics())
    return format_prometheus(metrics)
