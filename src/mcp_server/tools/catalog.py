"""Catalog and introspection tools.

These tools answer in discovery mode. None of them raises a lifecycle error;
``discover_tools`` and ``discovery_info`` do not touch the coordinator at all
so that catalog scans never wait on network I/O.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from mcp_server import SERVER_NAME, __version__
from mcp_server.hosting.instance import ServerInstance
from mcp_server.tools.registry import (
    CANONICAL_TOOLS,
    Availability,
    get_all_tool_names,
    tool_availability,
)
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import exception_response

logger = logging.getLogger(__name__)

CAPABILITIES = ["pocketbase", "database", "auth", "payments", "email"]


def build_status(instance: ServerInstance) -> Dict[str, Any]:
    """Status document shared by ``get_server_status`` and ``agent://status``."""
    coordinator = instance.coordinator
    status = coordinator.describe()
    status["agent"] = {
        "session_id": instance.session_id,
        "last_active_time": instance.store.last_active_time.isoformat(),
        "discovery_mode": coordinator.is_discovery_mode,
    }
    return status


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def health_check() -> str:
        """Check the health status of the MCP server and PocketBase connection."""
        await coordinator.ensure_initialized(
            coordinator.default_options(require_auth=False, allow_discovery_mode=True)
        )
        state = coordinator.state
        status: Dict[str, Any] = {
            "server": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "initialized": state.backend_initialized,
            "authenticated": state.is_authenticated,
            "discovery_mode": coordinator.is_discovery_mode,
        }
        if state.last_error:
            status["last_error"] = state.last_error

        backend = coordinator.backend
        if backend is None:
            status["pocketbase"] = "not initialized"
        else:
            try:
                await backend.health_check()
                status["pocketbase"] = "healthy"
            except Exception as e:
                status["pocketbase"] = f"unhealthy: {e}"

        for name in ("stripe", "email"):
            if coordinator.service(name) is not None:
                status[name] = "available"

        return tool_success_response(
            status, provider="pocketbase", discovery_mode=coordinator.is_discovery_mode
        )

    async def discover_tools() -> str:
        """List all tools and whether each one can run right now."""
        tools = [
            {
                "name": name,
                "requires": CANONICAL_TOOLS[name].value,
                "status": tool_availability(name, coordinator).value,
            }
            for name in get_all_tool_names()
        ]
        available = sum(1 for t in tools if t["status"] == Availability.AVAILABLE.value)
        return tool_success_response(
            {"total_tools": len(tools), "available_tools": available, "tools": tools},
            provider=SERVER_NAME,
            returned_count=len(tools),
            discovery_mode=coordinator.is_discovery_mode,
        )

    async def discovery_info() -> str:
        """Fast discovery endpoint for hosted tool scanning."""
        started_at = time.monotonic()
        info = {
            "server": SERVER_NAME,
            "version": __version__,
            "capabilities": CAPABILITIES,
            "tool_count": len(CANONICAL_TOOLS),
            "status": "ready",
        }
        return tool_success_response(
            info,
            provider=SERVER_NAME,
            execution_time_ms=(time.monotonic() - started_at) * 1000,
        )

    async def get_server_status() -> str:
        """Describe the session, initialization state and configured services."""
        return tool_success_response(
            build_status(instance),
            provider=SERVER_NAME,
            discovery_mode=coordinator.is_discovery_mode,
        )

    async def configure_server(
        pocketbase_url: Optional[str] = None,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
        stripe_secret_key: Optional[str] = None,
        email_service: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        sendgrid_api_key: Optional[str] = None,
        default_from_email: Optional[str] = None,
    ) -> str:
        """Supply configuration at runtime and retry the backend connection.

        Omitted fields fall back to the process environment.
        """
        override = {
            "pocketbase_url": pocketbase_url,
            "admin_email": admin_email,
            "admin_password": admin_password,
            "stripe_secret_key": stripe_secret_key,
            "email_service": email_service,
            "smtp_host": smtp_host,
            "smtp_port": smtp_port,
            "smtp_user": smtp_user,
            "smtp_password": smtp_password,
            "sendgrid_api_key": sendgrid_api_key,
            "default_from_email": default_from_email,
        }
        try:
            resolution = await coordinator.configure(override)
            if resolution.is_valid:
                await coordinator.ensure_initialized(
                    coordinator.default_options(require_auth=False, allow_discovery_mode=True)
                )
        except Exception as e:
            return exception_response(e, provider=SERVER_NAME, action="configure server")

        logger.info(
            "event=server_configured valid=%s discovery_mode=%s",
            resolution.is_valid,
            coordinator.is_discovery_mode,
        )
        return tool_success_response(
            {
                "configuration_valid": resolution.is_valid,
                "errors": resolution.errors,
                "status": build_status(instance),
            },
            provider=SERVER_NAME,
            discovery_mode=coordinator.is_discovery_mode,
        )

    return {
        "health_check": health_check,
        "discover_tools": discover_tools,
        "discovery_info": discovery_info,
        "get_server_status": get_server_status,
        "configure_server": configure_server,
    }
