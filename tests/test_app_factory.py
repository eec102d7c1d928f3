"""Tests for app factory and middleware."""

from fastapi.testclient import TestClient

from yapenotifier.api.factory import create_app


class TestRoutesMounted:
    def test_health_available(self):
        client = TestClient(create_app())
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_docs_disabled(self):
        client = TestClient(create_app())
        assert client.get("/docs").status_code == 404

    def test_expected_paths(self):
        paths = {route.path for route in create_app().routes}

        assert {
            "/health",
            "/settings/monitored-packages",
            "/notifications",
            "/notifications/statistics",
            "/notifications/{notification_id}",
            "/notifications/{notification_id}/status",
            "/app-instances",
            "/devices/{device_uuid}/app-instances",
            "/app-instances/{instance_id}/label",
            "/devices/{device_uuid}/health",
            "/outbox",
        } <= paths


class TestCorrelationId:
    """Tests for correlation ID middleware."""

    def test_generates_correlation_id(self):
        client = TestClient(create_app())
        response = client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 36  # UUID length

    def test_preserves_incoming_correlation_id(self):
        client = TestClient(create_app())
        response = client.get("/health", headers={"X-Correlation-ID": "test-123"})
        assert response.headers["X-Correlation-ID"] == "test-123"
