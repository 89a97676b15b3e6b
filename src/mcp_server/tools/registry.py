"""Central registry for MCP tools.

This module provides a single point of registration for all MCP tools.
Tool modules expose ``build_handlers(instance)``, which binds their handlers
to one ``ServerInstance``; the registry wraps each handler with tracing and
activity tracking and registers it with the FastMCP server.
"""

import functools
import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List

from mcp_server.utils.tracing import trace_tool

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from mcp_server.hosting.instance import ServerInstance
    from mcp_server.lifecycle.coordinator import LifecycleCoordinator

logger = logging.getLogger(__name__)

STATUS_RESOURCE_URI = "agent://status"


class Requirement(str, Enum):
    """What a tool needs before it can do useful work."""

    NONE = "none"
    BACKEND = "backend"
    ADMIN = "admin"
    STRIPE = "stripe"
    EMAIL = "email"


class Availability(str, Enum):
    AVAILABLE = "available"
    REQUIRES_INITIALIZATION = "requires_initialization"
    UNAVAILABLE = "unavailable"


# Canonical tool names and their requirements.
# This is the authoritative list of all public tools.
CANONICAL_TOOLS: Dict[str, Requirement] = {
    # Catalog / introspection tools
    "health_check": Requirement.NONE,
    "discover_tools": Requirement.NONE,
    "discovery_info": Requirement.NONE,
    "get_server_status": Requirement.NONE,
    "configure_server": Requirement.NONE,
    # Header tools
    "set_custom_header": Requirement.NONE,
    "remove_custom_header": Requirement.NONE,
    "list_custom_headers": Requirement.NONE,
    # Collection tools
    "list_collections": Requirement.ADMIN,
    "get_collection": Requirement.ADMIN,
    # Record tools
    "list_records": Requirement.BACKEND,
    "get_record": Requirement.BACKEND,
    "create_record": Requirement.BACKEND,
    "update_record": Requirement.BACKEND,
    "delete_record": Requirement.BACKEND,
    # Stripe tools
    "stripe_create_customer": Requirement.STRIPE,
    "stripe_get_customer": Requirement.STRIPE,
    "stripe_create_payment_intent": Requirement.STRIPE,
    "stripe_create_product": Requirement.STRIPE,
    # Email tools
    "send_email": Requirement.EMAIL,
    "send_template_email": Requirement.EMAIL,
}


def get_all_tool_names() -> List[str]:
    """Return list of all canonical tool names."""
    return sorted(CANONICAL_TOOLS)


def validate_tool_names(names: List[str]) -> bool:
    """Validate that handler names match the canonical list exactly.

    Returns:
        True if all names are valid, raises ValueError otherwise.
    """
    missing = set(CANONICAL_TOOLS) - set(names)
    unknown = set(names) - set(CANONICAL_TOOLS)
    if missing or unknown:
        raise ValueError(
            f"Tool handlers do not match registry: missing={sorted(missing)} "
            f"unknown={sorted(unknown)}"
        )
    return True


def tool_availability(name: str, coordinator: "LifecycleCoordinator") -> Availability:
    """Report whether a tool can run right now without triggering any I/O."""
    requirement = CANONICAL_TOOLS[name]
    if requirement is Requirement.NONE:
        return Availability.AVAILABLE

    state = coordinator.state
    if coordinator.is_discovery_mode:
        return Availability.UNAVAILABLE
    if coordinator.backend is None:
        return Availability.REQUIRES_INITIALIZATION

    if requirement is Requirement.BACKEND:
        return Availability.AVAILABLE
    if requirement is Requirement.ADMIN:
        return Availability.AVAILABLE if state.is_authenticated else Availability.UNAVAILABLE
    if coordinator.service(requirement.value) is not None:
        return Availability.AVAILABLE
    return Availability.UNAVAILABLE


def _collect_handlers(instance: "ServerInstance") -> Dict[str, Callable[..., Awaitable[str]]]:
    from mcp_server.tools import (
        catalog,
        collections,
        email_tools,
        headers,
        records,
        stripe_tools,
    )

    handlers: Dict[str, Callable[..., Awaitable[str]]] = {}
    for module in (catalog, headers, collections, records, stripe_tools, email_tools):
        handlers.update(module.build_handlers(instance))
    return handlers


def _track_activity(
    instance: "ServerInstance", func: Callable[..., Awaitable[Any]]
) -> Callable[..., Awaitable[Any]]:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        instance.touch()
        return await func(*args, **kwargs)

    return wrapper


def register_all(mcp: "FastMCP", instance: "ServerInstance") -> Dict[str, Callable]:
    """Register all tools and the status resource with the MCP server.

    Args:
        mcp: FastMCP server instance
        instance: The server instance every handler is bound to

    Returns:
        The wrapped handlers keyed by tool name.
    """
    handlers = _collect_handlers(instance)
    validate_tool_names(list(handlers))

    registered: Dict[str, Callable] = {}
    for name in get_all_tool_names():
        traced = trace_tool(name)(handlers[name])
        wrapped = _track_activity(instance, traced)
        mcp.tool(name=name)(wrapped)
        registered[name] = wrapped

    from mcp_server.tools.catalog import build_status

    @mcp.resource(STATUS_RESOURCE_URI, mime_type="application/json")
    def agent_status() -> str:
        """Current agent status and configuration presence flags."""
        return json.dumps(build_status(instance), indent=2)

    logger.info("Registered %d tools with MCP server", len(registered))
    return registered
