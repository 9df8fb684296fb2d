from __future__ import annotations

from fastapi.testclient import TestClient

from daylog.main import app


def test_health_endpoint():
    """Test that the /health endpoint returns {"status": "ok"}."""
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_docs_disabled():
    client = TestClient(app)
    assert client.get("/docs").status_code == 404
