"""Tests for the server entrypoint."""

import os
from unittest.mock import MagicMock, patch

import pytest

from mcp_server import SERVER_NAME
from mcp_server.main import create_server, main, setup_telemetry


class TestCreateServer:
    def test_binds_instance_without_io(self, make_instance, backend_factory, valid_config):
        instance = make_instance(valid_config)

        mcp = create_server(instance)

        assert mcp.name == SERVER_NAME
        assert mcp.server_instance is instance
        assert backend_factory.connect_calls == 0
        assert instance.coordinator.state.config_loaded is False

    def test_builds_instance_from_environment(self):
        os.environ["MCP_INIT_TIMEOUT_MS"] = "2500"

        mcp = create_server(
            session_id="tenant-7", config_override={"pocketbase_url": "http://x:1"}
        )

        instance = mcp.server_instance
        assert instance.session_id == "tenant-7"
        assert instance.settings.init_timeout_ms == 2500
        assert instance.coordinator.configuration is None


class TestMain:
    @pytest.mark.parametrize(
        "transport, expected",
        [
            ("stdio", {"transport": "stdio"}),
            ("SSE", {"transport": "sse", "host": "0.0.0.0", "port": 8000}),
            ("streamable-http", {"transport": "streamable-http", "host": "0.0.0.0", "port": 8000}),
        ],
    )
    def test_transport_selection(self, transport, expected):
        os.environ["MCP_TRANSPORT"] = transport
        os.environ.pop("MCP_HOST", None)
        os.environ.pop("MCP_PORT", None)
        server = MagicMock()

        with patch("mcp_server.main.load_dotenv"), patch(
            "mcp_server.main.setup_telemetry"
        ), patch("mcp_server.main.create_server", return_value=server) as create:
            main()

        create.assert_called_once_with(session_id=None)
        server.run.assert_called_once_with(**expected)


class TestSetupTelemetry:
    def test_exporter_disabled_by_default(self):
        os.environ.pop("OTEL_DISABLE_EXPORTER", None)

        with patch("mcp_server.main.trace.set_tracer_provider") as set_provider, patch(
            "mcp_server.main.BatchSpanProcessor"
        ) as processor:
            setup_telemetry()

        set_provider.assert_called_once()
        processor.assert_not_called()

    def test_exporter_enabled(self):
        os.environ["OTEL_DISABLE_EXPORTER"] = "false"
        os.environ.pop("OTEL_EXPORTER_OTLP_ENDPOINT", None)

        with patch("mcp_server.main.trace.set_tracer_provider"), patch(
            "mcp_server.main.OTLPSpanExporter"
        ) as exporter, patch("mcp_server.main.BatchSpanProcessor") as processor:
            setup_telemetry()

        exporter.assert_called_once_with(endpoint="http://localhost:4317")
        processor.assert_called_once_with(exporter.return_value)
