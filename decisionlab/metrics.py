"""
Insight pipeline metrics.

In-process counters for the insight orchestrator, exported in Prometheus
text format by GET /metrics. The latency budget is advisory: overruns are
counted here and logged, never enforced.
"""

from typing import Union

_insight_metrics: dict[str, Union[int, float]] = {
    "insight_runs_total": 0,
    "insights_generated_total": 0,
    "engine_failures_total": 0,
    "budget_exceeded_total": 0,
    "fallback_insights_total": 0,
    "fallback_failures_total": 0,
    "last_generation_ms": 0.0,
}


def get_insight_metrics() -> dict[str, Union[int, float]]:
    """Get current insight metrics snapshot."""
    return dict(_insight_metrics)


def reset_insight_metrics() -> None:
    """Zero every counter (used by tests)."""
    for key, value in _insight_metrics.items():
        _insight_metrics[key] = 0.0 if isinstance(value, float) else 0


def increment(name: str, amount: int = 1) -> None:
    _insight_metrics[name] = _insight_metrics.get(name, 0) + amount


def observe_generation_ms(elapsed_ms: float) -> None:
    _insight_metrics["last_generation_ms"] = round(elapsed_ms, 2)


def format_prometheus(metrics: dict[str, Union[int, float, str]], prefix: str = "decisionlab") -> str:
    """Format metrics dict as Prometheus text exposition format."""
    lines: list[str] = []
    for key, value in metrics.items():
        safe_key = key.replace(".", "_").replace("-", "_")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            lines.append(f"{prefix}_{safe_key} {value}")
    return "\n".join(lines) + "\n"
