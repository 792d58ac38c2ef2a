"""
API endpoint tests.

Runs the FastAPI app in-process through httpx ASGITransport with the store
dependency pointed at the per-test database.

Covers:
- Decision create → score → recommend → complete → outcome → insight feed
- Error mapping: 422 (domain and request validation), 404, generic 500
- /health, /metrics and request-id propagation
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from decisionlab.api.deps import get_store, get_tracker
from decisionlab.main import app

DECISION_BODY = {
    "title": "Move to Lisbon?",
    "factors": [
        {"name": "Cost of living", "weight": 0.6},
        {"name": "Career", "weight": 0.4},
    ],
    "options": [
        {"name": "Move", "predicted_satisfaction": 8.0},
        {"name": "Stay", "predicted_satisfaction": 6.0},
    ],
    "scores": [
        {"option_index": 0, "factor_index": 0, "score": 5},
        {"option_index": 0, "factor_index": 1, "score": 1},
        {"option_index": 1, "factor_index": 0, "score": 3},
    ],
}


@pytest_asyncio.fixture
async def client(session_factory):
    """Async test client bound to the isolated store."""
    app.dependency_overrides[get_store] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _create(client, body=None) -> dict:
    response = await client.post("/api/v1/decisions", json=body or DECISION_BODY)
    assert response.status_code == 201, response.text
    return response.json()


# ── Health & observability ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_request_id_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_metrics_exposition(client):
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "decisionlab_insight_runs_total 0" in response.text
    assert "decisionlab_uptime_seconds" in response.text


# ── Decisions ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_fetch_decision(client):
    created = await _create(client)
    decision = created["decision"]

    assert decision["status"] == "active"
    assert len(decision["factors"]) == 2
    assert created["gamification"]["new_badges"][0]["id"] == "first_decision"

    fetched = await client.get(f"/api/v1/decisions/{decision['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Move to Lisbon?"


@pytest.mark.asyncio
async def test_recommendation_and_breakdown(client):
    """Move: 0.6·1 + 0.4·0 = 0.6; Stay: 0.6·0.5 + 0.4·0.5 (default) = 0.5."""
    decision = (await _create(client))["decision"]

    response = await client.get(f"/api/v1/decisions/{decision['id']}/recommendation")
    assert response.status_code == 200
    rec = response.json()
    assert rec["top_option"]["name"] == "Move"
    assert rec["options"][0]["utility"] == pytest.approx(0.6)
    assert rec["is_fully_scored"] is False

    stay = decision["options"][1]
    breakdown = await client.get(f"/api/v1/options/{stay['id']}/breakdown")
    assert breakdown.status_code == 200
    assert [f["is_default"] for f in breakdown.json()["factors"]] == [False, True]


@pytest.mark.asyncio
async def test_set_score(client):
    decision = (await _create(client))["decision"]
    stay, career = decision["options"][1], decision["factors"][1]

    response = await client.put(
        f"/api/v1/options/{stay['id']}/scores/{career['id']}", json={"score": 4}
    )
    assert response.status_code == 200
    assert response.json()["score"] == 4

    rec = (await client.get(f"/api/v1/decisions/{decision['id']}/recommendation")).json()
    assert rec["is_fully_scored"] is True


@pytest.mark.asyncio
async def test_recommendation_validation_error(client):
    """Weights summing to 0.8 → 422 listing the violated rule."""
    body = {**DECISION_BODY, "factors": [
        {"name": "Cost of living", "weight": 0.5},
        {"name": "Career", "weight": 0.3},
    ]}
    decision = (await _create(client, body))["decision"]

    response = await client.get(f"/api/v1/decisions/{decision['id']}/recommendation")
    assert response.status_code == 422
    assert response.json()["errors"] == ["Factor weights must sum to 1.0 (current: 0.80)"]


@pytest.mark.asyncio
async def test_create_validation_error(client):
    body = {**DECISION_BODY, "factors": [{"name": "Cost", "weight": 2.0}], "scores": []}
    response = await client.post("/api/v1/decisions", json=body)
    assert response.status_code == 422
    assert "weight must be between 0 and 1" in response.json()["errors"][0]


@pytest.mark.asyncio
async def test_request_body_validation(client):
    response = await client.post("/api/v1/decisions", json={"factors": []})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_decision_404(client):
    response = await client.get(f"/api/v1/decisions/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["status"] == 404


@pytest.mark.asyncio
async def test_lifecycle_endpoints(client):
    decision = (await _create(client))["decision"]
    base = f"/api/v1/decisions/{decision['id']}"

    assert (await client.post(f"{base}/archive")).json()["status"] == "archived"
    assert (await client.post(f"{base}/reactivate")).json()["status"] == "active"

    complexity = await client.get(f"{base}/complexity")
    assert complexity.json() == {"valid": True, "errors": [], "warnings": []}

    normalized = await client.post(f"{base}/normalize-weights")
    assert [f["weight"] for f in normalized.json()] == [0.6, 0.4]

    assert (await client.delete(base)).status_code == 204
    assert (await client.get(base)).status_code == 404


# ── Outcome → insights → gamification ────────────────────────────────────


@pytest.mark.asyncio
async def test_outcome_flow(client):
    decision = (await _create(client))["decision"]
    base = f"/api/v1/decisions/{decision['id']}"

    completed = await client.post(
        f"{base}/complete", json={"selected_option_id": decision["options"][0]["id"]}
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    logged = await client.post(f"{base}/outcome", json={"actual_satisfaction": 9, "surprise_factor": 2})
    assert logged.status_code == 201, logged.text
    result = logged.json()
    assert result["outcome"]["actual_satisfaction"] == 9
    assert len(result["insights"]) == 1
    insight = result["insights"][0]
    assert insight["insight_type"] == "achievement"
    assert insight["metadata"]["kind"] == "achievement"
    assert result["gamification"]["current_streak"] == 1

    duplicate = await client.post(f"{base}/outcome", json={"actual_satisfaction": 9})
    assert duplicate.status_code == 422

    unread = (await client.get("/api/v1/insights/unread")).json()
    assert [i["id"] for i in unread] == [insight["id"]]

    for_decision = (await client.get(f"{base}/insights")).json()
    assert [i["id"] for i in for_decision] == [insight["id"]]

    read = await client.post(f"/api/v1/insights/{insight['id']}/read")
    assert read.json()["is_read"] is True
    assert (await client.get("/api/v1/insights/unread")).json() == []

    status = (await client.get("/api/v1/gamification/status")).json()
    assert status["total_decisions"] == 1
    assert status["total_outcomes"] == 1
    assert status["total_insights_generated"] == 1
    assert status["total_insights_read"] == 1
    assert status["earned_badges"] == ["first_decision", "first_outcome"]

    badges = (await client.get("/api/v1/gamification/badges")).json()
    assert len(badges["earned"]) == 2

    metrics = (await client.get("/metrics")).text
    assert "decisionlab_insight_runs_total 1" in metrics
    assert "decisionlab_fallback_insights_total 1" in metrics


@pytest.mark.asyncio
async def test_outcome_out_of_range(client):
    decision = (await _create(client))["decision"]
    response = await client.post(
        f"/api/v1/decisions/{decision['id']}/outcome", json={"actual_satisfaction": 12}
    )
    assert response.status_code == 422
    assert response.json()["errors"][0].startswith("Actual satisfaction must be between 0 and 10")


@pytest.mark.asyncio
async def test_dismiss_and_undismiss(client):
    decision = (await _create(client))["decision"]
    logged = await client.post(
        f"/api/v1/decisions/{decision['id']}/outcome", json={"actual_satisfaction": 5}
    )
    insight_id = logged.json()["insights"][0]["id"]

    dismissed = await client.post(f"/api/v1/insights/{insight_id}/dismiss")
    assert dismissed.json()["is_dismissed"] is True
    assert (await client.get("/api/v1/insights/unread")).json() == []

    await client.post(f"/api/v1/insights/{insight_id}/undismiss")
    assert len((await client.get("/api/v1/insights/unread")).json()) == 1

    missing = await client.post(f"/api/v1/insights/{uuid.uuid4()}/read")
    assert missing.status_code == 404


# ── Unhandled errors ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unhandled_error_returns_generic_500(client):
    """Internals never leak: generic message plus an error_id."""

    def _broken_tracker():
        raise RuntimeError("secret connection string")

    app.dependency_overrides[get_tracker] = _broken_tracker
    response = await client.get("/api/v1/gamification/status")

    assert response.status_code == 500
    body = response.json()
    assert body["error_id"]
    assert "secret" not in response.text
