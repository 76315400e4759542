"""
Tests for health check and system status endpoints.
"""

from unittest.mock import Mock, MagicMock, patch

from services.health import HealthCheckService, SERVICE_NAME


def _mongodb(healthy=True):
    service = MagicMock()
    if healthy:
        service.health_check.return_value = {"status": "healthy", "version": "7.0.2"}
    else:
        service.health_check.return_value = {"status": "unhealthy", "error": "connection refused"}
    return service


def _redis(available=False, status="healthy"):
    service = Mock()
    service.is_available.return_value = available
    service.health_check.return_value = {"status": status}
    return service


class TestHealthCheckService:
    """Overall status from dependency checks."""

    def test_all_healthy(self):
        health = HealthCheckService(_mongodb(), _redis(available=True)).get_comprehensive_health()

        assert health["status"] == "healthy"
        assert health["service"] == SERVICE_NAME
        assert health["dependencies"]["mongodb"]["version"] == "7.0.2"
        assert health["dependencies"]["redis"]["status"] == "healthy"
        assert "system_metrics" in health

    def test_redis_not_configured_is_still_healthy(self):
        health = HealthCheckService(_mongodb(), _redis(available=False)).get_comprehensive_health()

        assert health["status"] == "healthy"
        assert health["dependencies"]["redis"]["status"] == "not_configured"

    def test_failing_redis_degrades(self):
        health = HealthCheckService(_mongodb(), _redis(True, "unhealthy")).get_comprehensive_health()
        assert health["status"] == "degraded"

    def test_mongodb_down_is_unhealthy(self):
        health = HealthCheckService(_mongodb(healthy=False), _redis()).get_comprehensive_health()

        assert health["status"] == "unhealthy"
        assert "connection refused" in health["dependencies"]["mongodb"]["error"]

    def test_integration_status(self):
        stripe = Mock()
        stripe.is_configured.return_value = True
        cloudinary = Mock()
        cloudinary.is_configured.return_value = False

        service = HealthCheckService(_mongodb(), _redis(), {"stripe": stripe, "cloudinary": cloudinary})

        assert service.get_integration_status() == {"stripe": True, "cloudinary": False}

    def test_configuration_hides_secrets(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "super-secret")
        monkeypatch.delenv("REDIS_URL", raising=False)

        status = HealthCheckService(_mongodb(), _redis()).get_configuration_status()

        assert status["jwt_secret_configured"] is True
        assert status["redis_configured"] is False
        assert "super-secret" not in str(status)

    def test_metrics_failure_is_reported(self):
        service = HealthCheckService(_mongodb(), _redis())
        with patch("services.health.psutil.virtual_memory", side_effect=OSError("no /proc")):
            metrics = service.get_system_metrics()
        assert "no /proc" in metrics["error"]


class TestHealthEndpoints:
    """/api/healthz and /api/status."""

    def test_healthz_ok(self, app, client):
        with patch.object(app.health_service, "get_comprehensive_health",
                          return_value={"status": "degraded", "dependencies": {}}):
            response = client.get('/api/healthz')

        assert response.status_code == 200
        assert response.get_json()["status"] == "degraded"

    def test_healthz_unhealthy_is_503(self, app, client):
        with patch.object(app.health_service, "get_comprehensive_health",
                          return_value={"status": "unhealthy", "dependencies": {}}):
            response = client.get('/api/healthz')

        assert response.status_code == 503

    def test_healthz_service_failure(self, app, client):
        with patch.object(app.health_service, "get_comprehensive_health", side_effect=RuntimeError("boom")):
            response = client.get('/api/healthz')

        data = response.get_json()
        assert response.status_code == 503
        assert data["service"] == SERVICE_NAME
        assert "boom" in data["error"]

    def test_status(self, app, client):
        with patch.object(app.health_service, "get_integration_status", return_value={"stripe": False}):
            data = client.get('/api/status').get_json()

        assert data["service"] == SERVICE_NAME
        assert data["integrations"] == {"stripe": False}
        assert data["feature_flags"]["otel_enabled"] is False
        assert "uptime_seconds" in data["uptime"]
        assert "jwt_secret_configured" in data["configuration"]
