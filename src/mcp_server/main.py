"""MCP Server entrypoint for the PocketBase MCP server.

This module builds the FastMCP server and registers all tools via the
central registry. Startup performs no network I/O: the PocketBase connection
is established lazily by the first tool call that needs it.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from common.config.env import get_env_bool, get_env_int, get_env_str
from mcp_server import SERVER_NAME
from mcp_server.config.settings import OverrideSource, ServerSettings
from mcp_server.hosting.instance import ServerInstance
from mcp_server.hosting.runtime import InstanceHost
from mcp_server.session.store import JsonFileSessionRepository
from mcp_server.tools.registry import register_all

logger = logging.getLogger(__name__)


def setup_telemetry() -> None:
    """Initialize OTEL SDK for the MCP server."""
    service_name = get_env_str("OTEL_SERVICE_NAME", "pocketbase-mcp")
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    trace.set_tracer_provider(provider)

    if get_env_bool("OTEL_DISABLE_EXPORTER", True):
        logger.info("OTEL initialized without exporter (OTEL_DISABLE_EXPORTER=true)")
        return

    endpoint = get_env_str("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    try:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        logger.info("OTEL initialized for MCP server: %s -> %s", service_name, endpoint)
    except Exception as exc:
        logger.exception("Failed to initialize OTEL exporter; continuing without it: %s", exc)


def create_server(
    instance: Optional[ServerInstance] = None,
    *,
    session_id: Optional[str] = None,
    config_override: OverrideSource = None,
) -> FastMCP:
    """Build a FastMCP server bound to one ``ServerInstance``.

    The instance is stored on the returned server as ``server_instance``.
    """
    instance = instance or ServerInstance(
        session_id,
        settings=ServerSettings.from_env(),
        config_override=config_override,
    )

    @asynccontextmanager
    async def lifespan(app):
        """Resume a persisted session if configured; hibernate or close on shutdown."""
        logger.info("event=server_started session_id=%s", instance.session_id)
        store_dir = instance.settings.session_store_dir
        if not (store_dir and instance.session_id):
            try:
                yield
            finally:
                await instance.close()
            return

        host = InstanceHost(
            JsonFileSessionRepository(store_dir),
            settings=instance.settings,
            instance_factory=lambda _session_id: instance,
        )
        await host.get_instance(instance.session_id)
        try:
            yield
        finally:
            await host.close()

    mcp = FastMCP(SERVER_NAME, lifespan=lifespan)
    register_all(mcp, instance)
    mcp.server_instance = instance
    return mcp


def main() -> None:
    """Run the server with transport and host/port from the environment."""
    logging.basicConfig(level=logging.INFO)
    load_dotenv()
    setup_telemetry()

    mcp = create_server(session_id=get_env_str("MCP_SESSION_ID"))

    transport = get_env_str("MCP_TRANSPORT", "stdio").lower()
    host = get_env_str("MCP_HOST", "0.0.0.0")
    port = get_env_int("MCP_PORT", 8000)

    if transport in ("sse", "http", "streamable-http"):
        print(
            f"Starting MCP server in {transport} mode on {host}:{port}",
            file=sys.stderr,
            flush=True,
        )
        mcp.run(transport=transport, host=host, port=port)
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
