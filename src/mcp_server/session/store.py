"""Session capture/restore and persistence backends."""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from mcp_server.lifecycle.coordinator import LifecycleCoordinator
from mcp_server.session.models import Session, utc_now

logger = logging.getLogger(__name__)


class SessionStateStore:
    """Moves a coordinator's persistable state in and out of a ``Session``."""

    def __init__(self, coordinator: LifecycleCoordinator, session_id: Optional[str] = None):
        self._coordinator = coordinator
        self.session_id = session_id
        self.last_active_time: datetime = utc_now()

    def touch(self) -> None:
        self.last_active_time = utc_now()

    def capture(self) -> Session:
        """Deep snapshot of the current state; refreshes the activity timestamp."""
        self.touch()
        state, configuration, headers = self._coordinator.snapshot()
        return Session(
            session_id=self.session_id,
            configuration=configuration,
            initialization_state=state,
            custom_headers=headers,
            last_active_time=self.last_active_time,
        )

    def restore(self, session: Session) -> None:
        """Replace in-memory state wholesale. Never re-runs initialization."""
        self._coordinator.restore(
            session.initialization_state,
            session.configuration,
            session.custom_headers,
        )
        self.session_id = session.session_id
        self.last_active_time = session.last_active_time
        logger.info(
            "event=session_restored session_id=%s backend_initialized=%s",
            session.session_id,
            session.initialization_state.backend_initialized,
        )


class SessionRepository(Protocol):
    """Durable storage for captured sessions, keyed by session id."""

    async def load(self, session_id: str) -> Optional[Session]: ...

    async def save(self, session: Session) -> None: ...

    async def delete(self, session_id: str) -> None: ...

    async def list_ids(self) -> List[str]: ...


class InMemorySessionRepository:
    """Keeps serialized sessions in a dict. Useful for tests and single-process hosts."""

    def __init__(self) -> None:
        self._data: Dict[str, dict] = {}

    async def load(self, session_id: str) -> Optional[Session]:
        raw = self._data.get(session_id)
        return Session.from_dict(copy.deepcopy(raw)) if raw is not None else None

    async def save(self, session: Session) -> None:
        if not session.session_id:
            raise ValueError("Cannot persist a session without a session_id")
        self._data[session.session_id] = session.to_dict()

    async def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    async def list_ids(self) -> List[str]:
        return list(self._data)


class JsonFileSessionRepository:
    """One JSON document per session under ``directory``."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, session_id: str) -> str:
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return os.path.join(self.directory, f"{digest}.json")

    def _read(self, path: str) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    def _write(self, path: str, payload: dict) -> None:
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        os.replace(tmp_path, path)

    async def load(self, session_id: str) -> Optional[Session]:
        raw = await asyncio.to_thread(self._read, self._path(session_id))
        return Session.from_dict(raw) if raw is not None else None

    async def save(self, session: Session) -> None:
        if not session.session_id:
            raise ValueError("Cannot persist a session without a session_id")
        await asyncio.to_thread(self._write, self._path(session.session_id), session.to_dict())

    async def delete(self, session_id: str) -> None:
        try:
            await asyncio.to_thread(os.remove, self._path(session_id))
        except FileNotFoundError:
            pass

    async def list_ids(self) -> List[str]:
        def _scan() -> List[str]:
            ids = []
            for name in sorted(os.listdir(self.directory)):
                if not name.endswith(".json"):
                    continue
                raw = self._read(os.path.join(self.directory, name))
                if raw and raw.get("session_id"):
                    ids.append(raw["session_id"])
            return ids

        return await asyncio.to_thread(_scan)
