"""
Unit tests for core.metrics module.

Tests:
- MetricsConfig defaults and port bounds
- MetricsServer no-op when disabled, idempotent stop
- /metrics handler output
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import ValidationError

from cloudsync.core.metrics import (
    SERVICE_COUNTER,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)


class TestMetricsConfig:
    """MetricsConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = MetricsConfig()
        assert config.enabled is False
        assert config.port == 9108
        assert config.host == "127.0.0.1"
        assert config.path == "/metrics"

    def test_privileged_port_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MetricsConfig(port=80)


class TestMetricsServer:
    """MetricsServer lifecycle."""

    async def test_disabled_server_does_not_bind(self) -> None:
        server = await start_metrics_server(MetricsConfig(enabled=False))
        assert server._runner is None
        await server.stop()

    async def test_stop_is_idempotent(self) -> None:
        server = MetricsServer(MetricsConfig())
        await server.stop()
        await server.stop()
        assert server._runner is None

    async def test_handler_exposes_service_counter(self) -> None:
        SERVICE_COUNTER.labels(service="exporter", name="records_exported").inc(0)

        response = await MetricsServer._handle_metrics(MagicMock())

        assert response.headers["Content-Type"] == CONTENT_TYPE_LATEST
        assert b"cloudsync_service_counter" in response.body
