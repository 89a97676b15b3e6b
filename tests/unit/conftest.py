"""Unit test environment helpers."""

import asyncio
import os
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from mcp_server.config.settings import CONFIG_TO_ENV

_RUNTIME_KEYS = (
    "MCP_INIT_TIMEOUT_MS",
    "HIBERNATION_THRESHOLD_SECONDS",
    "POCKETBASE_REQUEST_TIMEOUT_SECONDS",
    "MCP_SESSION_STORE_DIR",
    "MCP_SESSION_ID",
)


@pytest.fixture(autouse=True)
def _isolated_env():
    """Strip backend settings and undo anything a test mirrors into the environment."""
    saved = dict(os.environ)
    for key in (*CONFIG_TO_ENV.values(), *_RUNTIME_KEYS):
        os.environ.pop(key, None)
    yield
    os.environ.clear()
    os.environ.update(saved)


class FakeBackend:
    """Stands in for ``PocketBaseClient``; records construction arguments."""

    def __init__(self, base_url: str, headers=None, timeout=None) -> None:
        self.base_url = base_url
        self.headers: Dict[str, str] = dict(headers or {})
        self.timeout = timeout
        self.health_check = AsyncMock(return_value={"code": 200, "message": "API is healthy."})
        self.authenticate_superuser = AsyncMock(return_value={"token": "admin-token"})
        self.aclose = AsyncMock()
        self.list_collections = AsyncMock(return_value={"items": [], "totalItems": 0})
        self.get_full_collection_list = AsyncMock(return_value=[])
        self.get_collection = AsyncMock(return_value={"id": "c1", "name": "posts"})
        self.list_records = AsyncMock(
            return_value={"items": [], "page": 1, "perPage": 30, "totalItems": 0}
        )
        self.get_record = AsyncMock(return_value={"id": "r1"})
        self.get_first_record = AsyncMock(return_value={"id": "r1"})
        self.create_record = AsyncMock(side_effect=lambda collection, data: {"id": "new", **data})
        self.update_record = AsyncMock(return_value={"id": "r1"})
        self.delete_record = AsyncMock(return_value=None)

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def remove_header(self, name: str) -> bool:
        return self.headers.pop(name, None) is not None


class FakeBackendFactory:
    """Callable used as ``backend_factory``; can fail, reject auth, or stall."""

    def __init__(self) -> None:
        self.created: List[FakeBackend] = []
        self.connect_error: Optional[Exception] = None
        self.auth_error: Optional[Exception] = None
        self.release: Optional[asyncio.Event] = None

    def __call__(self, base_url: str, headers=None, timeout=None) -> FakeBackend:
        if self.connect_error is not None:
            raise self.connect_error
        backend = FakeBackend(base_url, headers=headers, timeout=timeout)
        if self.auth_error is not None:
            backend.authenticate_superuser.side_effect = self.auth_error
        if self.release is not None:
            release = self.release

            async def _stalled_health() -> Dict[str, Any]:
                await release.wait()
                return {"code": 200}

            backend.health_check.side_effect = _stalled_health
        self.created.append(backend)
        return backend

    @property
    def connect_calls(self) -> int:
        return len(self.created)

    @property
    def auth_calls(self) -> int:
        return sum(b.authenticate_superuser.await_count for b in self.created)


@pytest.fixture
def backend_factory() -> FakeBackendFactory:
    return FakeBackendFactory()


@pytest.fixture
def valid_config() -> Dict[str, str]:
    return {
        "pocketbase_url": "http://pb.test:8090",
        "admin_email": "admin@example.com",
        "admin_password": "s3cret-pass",
    }


@pytest.fixture
def make_instance(backend_factory):
    """Build a ``ServerInstance`` whose coordinator uses the fake backend factory."""
    from mcp_server.hosting.instance import ServerInstance
    from mcp_server.lifecycle.coordinator import LifecycleCoordinator

    def _make(override=None, activators=(), session_id="s1") -> ServerInstance:
        coordinator = LifecycleCoordinator(
            config_override=override,
            activators=list(activators),
            backend_factory=backend_factory,
        )
        return ServerInstance(session_id, coordinator=coordinator)

    return _make
