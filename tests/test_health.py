"""Tests for the /health endpoint."""

from fastapi.testclient import TestClient

from src.main import app


def test_health_returns_ok(client: TestClient) -> None:
    """GET /health should return 200 with status 'ok' once the corpus is loaded."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["corpus"] == "loaded"
    assert data["entries"] > 0


def test_health_without_engine() -> None:
    """Before startup there is no engine to report on."""
    app.state.engine = None
    data = TestClient(app).get("/health").json()
    assert data["status"] == "error"
    assert data["corpus"] == "not loaded"
