"""Tests for the health endpoint."""
from unittest.mock import patch

from fastapi.testclient import TestClient


class TestHealth:
    """Tests for GET /health."""

    def test_health_ok(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "workflow-engine"
        assert data["port"] == 3003
        assert data["db"] == {"ok": True, "details": "ok"}

    def test_health_degraded_on_db_failure(self, client: TestClient):
        with patch(
            "services.workflow_engine.app.api.v1.routers.health.check_database_health",
            return_value={"ok": False, "details": "connection refused"},
        ):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"


class TestMetricsEndpoint:
    def test_exposes_approval_metrics(self, client: TestClient):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "approvals_created_total" in response.text
        assert "approvals_review_latency_seconds" in response.text
