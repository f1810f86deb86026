from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests, PostgreSQL is not configured and the oracle is the static quote
    assert data["checks"]["database"] == "not_configured"
    assert data["checks"]["oracle"] == "static"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_unknown_route_is_404(client: TestClient) -> None:
    assert client.get("/nope").status_code == 404
