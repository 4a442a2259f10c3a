"""
Tests for FastAPI endpoints.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tls_cert_check import __version__
from tls_cert_check.api import _is_allowed, create_app
from tls_cert_check.config import Config
from tls_cert_check.errors import ErrorKind, ProbeError
from tls_cert_check.metrics import MetricsCollector
from tls_cert_check.scheduler import SslCheckScheduler
from tls_cert_check.ssl_info import SslInfo


class TestAPI:
    """Test API endpoints."""

    @pytest.fixture
    def config(self, server_cert):
        return Config(
            hosts=["127.0.0.2:1272"],
            cert=str(server_cert.cert_path),
            key=str(server_cert.key_path),
            enable_ip_whitelist=False,
        )

    @pytest.fixture
    def mock_scheduler(self):
        scheduler = AsyncMock(spec=SslCheckScheduler)
        scheduler.get_health_status.return_value = {
            "check_status": "running",
            "check_interval": 600,
            "targets": ["127.0.0.2:1272"],
            "last_check_timestamp": None,
            "last_check_errors": 0,
        }
        return scheduler

    @pytest.fixture
    def mock_metrics(self):
        metrics = MagicMock(spec=MetricsCollector)
        metrics.get_metrics.return_value = "# Mock metrics\nssl_status 1.0\n"
        metrics.get_content_type.return_value = "text/plain; charset=utf-8"
        metrics.get_registry_status.return_value = {
            "prometheus_registry": {"status": "healthy", "tracked_series": 0}
        }
        return metrics

    @pytest.fixture
    def client(self, config, mock_scheduler, mock_metrics):
        app = create_app(scheduler=mock_scheduler, metrics=mock_metrics, config=config)
        return TestClient(app)

    def test_health_endpoint(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["check_status"] == "running"
        assert data["prometheus_registry"]["status"] == "healthy"

    def test_health_endpoint_error(self, client, mock_scheduler):
        mock_scheduler.get_health_status.side_effect = RuntimeError("broken")

        response = client.get("/healthz")
        assert response.status_code == 500
        assert response.json()["status"] == "error"

    def test_metrics_endpoint(self, client, mock_metrics):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "ssl_status 1.0" in response.text
        mock_metrics.get_metrics.assert_called_once()

    def test_check_endpoint(self, client, mock_scheduler):
        mock_scheduler.check.return_value = [
            SslInfo(
                host="127.0.0.2",
                port=1272,
                error=ProbeError(ErrorKind.CONNECTION_REFUSED, "Connection refused"),
                measured_at=datetime(2023, 7, 7, tzinfo=timezone.utc),
            )
        ]

        response = client.post("/check")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert len(data["results"]) == 1
        result = data["results"][0]
        assert result["host"] == "127.0.0.2"
        assert result["status"] == 0
        assert result["error_kind"] == "connection_refused"
        mock_scheduler.check.assert_awaited_once()

    def test_check_endpoint_failure(self, client, mock_scheduler):
        mock_scheduler.check.side_effect = RuntimeError("boom")

        response = client.post("/check")
        assert response.status_code == 500

    def test_config_endpoint_redacts_secrets(self, client, config):
        response = client.get("/config")
        assert response.status_code == 200
        data = response.json()
        assert data["hosts"] == ["127.0.0.2:1272"]
        assert data["tag"] == "ssl_check"
        assert data["cert"] == config.cert
        assert data["key"] == "***REDACTED***"
        assert data["allowed_ips"] == "***REDACTED***"


class TestIPWhitelist:
    """Test IP whitelist enforcement."""

    def test_unknown_client_denied(self):
        config = Config(enable_ip_whitelist=True)
        app = create_app(
            scheduler=AsyncMock(spec=SslCheckScheduler),
            metrics=MagicMock(spec=MetricsCollector),
            config=config,
        )
        client = TestClient(app)

        response = client.get("/metrics")
        assert response.status_code == 403
        assert response.json()["error"] == "Access forbidden"

    def test_is_allowed(self):
        allowed = ["127.0.0.1", "10.0.0.0/8"]
        assert _is_allowed("127.0.0.1", allowed)
        assert _is_allowed("10.1.2.3", allowed)
        assert not _is_allowed("192.168.1.1", allowed)
        assert not _is_allowed("not-an-ip", allowed)
