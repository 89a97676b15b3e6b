"""Record CRUD tools.

Record access is governed by the collection's API rules, so these tools do
not require admin authentication; the admin token is sent when present.
"""

import time
from typing import Any, Callable, Dict, Optional

from mcp_server.hosting.instance import ServerInstance
from mcp_server.lifecycle.gate import acquire_backend
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import exception_response

TOOL_PROVIDER = "pocketbase"


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def list_records(
        collection: str,
        page: int = 1,
        per_page: int = 30,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
        expand: Optional[str] = None,
    ) -> str:
        """List records of a collection, one page at a time.

        Args:
            collection: Collection id or name.
            page: 1-based page number.
            per_page: Page size.
            filter: PocketBase filter expression, e.g. ``status = "active"``.
            sort: Sort expression, e.g. ``-created,title``.
            expand: Relations to expand.
        """
        start_time = time.monotonic()
        try:
            backend = await acquire_backend(coordinator)
            result = await backend.list_records(
                collection, page=page, per_page=per_page, filter=filter, sort=sort, expand=expand
            )
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="list records")

        items = result.get("items", [])
        return tool_success_response(
            items,
            provider=TOOL_PROVIDER,
            execution_time_ms=(time.monotonic() - start_time) * 1000,
            returned_count=len(items),
            items_total=result.get("totalItems"),
            page=result.get("page", page),
            per_page=result.get("perPage", per_page),
        )

    async def get_record(collection: str, record_id: str, expand: Optional[str] = None) -> str:
        """Fetch a single record by id."""
        try:
            backend = await acquire_backend(coordinator)
            record = await backend.get_record(collection, record_id, expand=expand)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="get record")
        return tool_success_response(record, provider=TOOL_PROVIDER)

    async def create_record(collection: str, data: Dict[str, Any]) -> str:
        """Create a record in a collection."""
        try:
            backend = await acquire_backend(coordinator)
            record = await backend.create_record(collection, data)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="create record")
        return tool_success_response(record, provider=TOOL_PROVIDER)

    async def update_record(collection: str, record_id: str, data: Dict[str, Any]) -> str:
        """Update fields of an existing record."""
        try:
            backend = await acquire_backend(coordinator)
            record = await backend.update_record(collection, record_id, data)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="update record")
        return tool_success_response(record, provider=TOOL_PROVIDER)

    async def delete_record(collection: str, record_id: str) -> str:
        """Delete a record."""
        try:
            backend = await acquire_backend(coordinator)
            await backend.delete_record(collection, record_id)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="delete record")
        return tool_success_response(
            {"deleted": True, "collection": collection, "id": record_id}, provider=TOOL_PROVIDER
        )

    return {
        "list_records": list_records,
        "get_record": get_record,
        "create_record": create_record,
        "update_record": update_record,
        "delete_record": delete_record,
    }
