"""Tool dispatch gate.

Every operational tool goes through these helpers before touching the
backend. They drive ``ensure_initialized`` and turn "no handle" into the
typed error naming the unmet precondition.
"""

from typing import Any, Optional

from dal.pocketbase import PocketBaseClient
from mcp_server.lifecycle.coordinator import LifecycleCoordinator


async def acquire_backend(
    coordinator: LifecycleCoordinator,
    *,
    require_auth: bool = False,
    as_admin: bool = False,
    timeout_ms: Optional[int] = None,
) -> PocketBaseClient:
    """Return a live backend handle or raise an ``InitError``."""
    overrides: dict[str, Any] = {"require_auth": require_auth, "as_admin": as_admin}
    if timeout_ms is not None:
        overrides["timeout_ms"] = timeout_ms
    await coordinator.ensure_initialized(coordinator.default_options(**overrides))

    backend = coordinator.backend
    if backend is None:
        raise coordinator.unmet_precondition()
    return backend


async def acquire_service(
    coordinator: LifecycleCoordinator,
    name: str,
    *,
    timeout_ms: Optional[int] = None,
) -> Any:
    """Return the named dependent service handle or raise an ``InitError``."""
    await acquire_backend(coordinator, timeout_ms=timeout_ms)
    handle = coordinator.service(name)
    if handle is None:
        raise coordinator.capability_gap(name)
    return handle
