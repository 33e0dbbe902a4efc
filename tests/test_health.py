"""
Tests for health check and metrics endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from app.auth.tokens import SourceTokenRegistry
from app.config import SERVICE_NAME, VERSION
from app.main import create_app


@pytest.fixture
def client(gateway):
    return TestClient(gateway)


def test_health_liveness(client):
    """Test liveness health check."""
    r = client.get("/healthz")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["service"] == SERVICE_NAME
    assert data["version"] == VERSION
    assert "timestamp" in data


def test_health_readiness(client):
    """Test readiness health check."""
    r = client.get("/healthz/ready")
    # Should be 200 (ready) or 503 (not ready)
    assert r.status_code in [200, 503]
    data = r.json()
    assert data["service"] == SERVICE_NAME
    assert "checks" in data
    assert data["checks"]["source_tokens"] == {"status": "ok", "count": 1}


def test_readiness_without_tokens(settings, events_client):
    """A gateway with no source tokens cannot accept events."""
    client = TestClient(create_app(settings, SourceTokenRegistry(), events_client))

    r = client.get("/healthz/ready")

    assert r.status_code == 503
    assert r.json()["checks"]["source_tokens"]["status"] == "error"


def test_metrics_endpoint(client):
    """Test Prometheus metrics endpoint."""
    client.options("/events")
    r = client.get("/metrics")
    assert r.status_code == 200
    content = r.text
    assert "http_requests_total" in content
    assert "http_request_duration_seconds" in content
    assert "app_up" in content
    assert "gateway_handshakes_total" in content


def test_correlation_id_in_response(client):
    """Test that correlation ID is added to response headers."""
    r = client.get("/healthz")
    assert "x-correlation-id" in r.headers


def test_correlation_id_propagation(client):
    """Test that provided correlation ID is propagated."""
    correlation_id = "test-correlation-id-123"
    r = client.get("/healthz", headers={"x-correlation-id": correlation_id})
    assert r.headers["x-correlation-id"] == correlation_id


def test_lifespan_closes_upstream_client(settings, source_registry):
    closed = []

    class ClosingClient:
        async def create(self, event):
            pass

        async def close(self):
            closed.append(True)

    with TestClient(create_app(settings, source_registry, ClosingClient())) as client:
        assert client.get("/healthz").status_code == 200

    assert closed == [True]
