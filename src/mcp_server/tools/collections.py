"""MCP tools: list_collections, get_collection."""

import time
from typing import Callable, Dict, Optional

from mcp_server.hosting.instance import ServerInstance
from mcp_server.lifecycle.gate import acquire_backend
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import exception_response

TOOL_PROVIDER = "pocketbase"


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def list_collections(
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> str:
        """List collections in the PocketBase database.

        Requires admin authentication. Without ``page`` every collection is
        returned; with it a single page is fetched.

        Args:
            page: Optional 1-based page number.
            per_page: Page size when ``page`` is given (default 30).
            filter: PocketBase filter expression.
            sort: Sort expression, e.g. ``-created``.
        """
        start_time = time.monotonic()
        try:
            backend = await acquire_backend(coordinator, as_admin=True)
            if page is None and filter is None and sort is None:
                items = await backend.get_full_collection_list()
                total = len(items)
            else:
                result = await backend.list_collections(
                    page=page or 1, per_page=per_page or 30, filter=filter, sort=sort
                )
                items = result.get("items", [])
                total = result.get("totalItems", len(items))
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="list collections")

        return tool_success_response(
            items,
            provider=TOOL_PROVIDER,
            execution_time_ms=(time.monotonic() - start_time) * 1000,
            returned_count=len(items),
            items_total=total,
            page=page,
            per_page=per_page,
        )

    async def get_collection(id_or_name: str) -> str:
        """Get the schema and rules of one collection (admin only)."""
        try:
            backend = await acquire_backend(coordinator, as_admin=True)
            collection = await backend.get_collection(id_or_name)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="get collection")
        return tool_success_response(collection, provider=TOOL_PROVIDER)

    return {
        "list_collections": list_collections,
        "get_collection": get_collection,
    }
