"""Custom request header tools.

Headers belong to the session: they survive hibernation and are applied to
the backend client whenever one is connected.
"""

from typing import Callable, Dict

from mcp_server.hosting.instance import ServerInstance
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import tool_error_response

TOOL_PROVIDER = "pocketbase"


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def set_custom_header(name: str, value: str) -> str:
        """Set a header sent with every PocketBase request."""
        name = (name or "").strip()
        if not name:
            return tool_error_response(
                message="Header name must not be empty.",
                code="INVALID_HEADER_NAME",
                provider=TOOL_PROVIDER,
            )
        if name.lower() == "authorization":
            return tool_error_response(
                message="The Authorization header is managed by admin authentication.",
                code="RESERVED_HEADER",
                provider=TOOL_PROVIDER,
            )
        coordinator.set_custom_header(name, value)
        return tool_success_response(
            {"name": name, "headers": sorted(coordinator.custom_headers)},
            provider=TOOL_PROVIDER,
        )

    async def remove_custom_header(name: str) -> str:
        """Stop sending a previously set header."""
        removed = coordinator.remove_custom_header(name)
        return tool_success_response(
            {"name": name, "removed": removed, "headers": sorted(coordinator.custom_headers)},
            provider=TOOL_PROVIDER,
        )

    async def list_custom_headers() -> str:
        """List custom headers currently applied to PocketBase requests."""
        headers = coordinator.custom_headers
        return tool_success_response(
            {"headers": headers}, provider=TOOL_PROVIDER, returned_count=len(headers)
        )

    return {
        "set_custom_header": set_custom_header,
        "remove_custom_header": remove_custom_header,
        "list_custom_headers": list_custom_headers,
    }
