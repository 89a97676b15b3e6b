"""Hosting runtime: keeps live instances, hibernates idle ones.

Instances are keyed by session id. An evicted instance is captured into a
``SessionRepository`` and its connections are closed; the next request for
that session restores it and reconnects on demand.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from mcp_server.config.settings import ServerSettings
from mcp_server.hosting.instance import ServerInstance
from mcp_server.session.store import InMemorySessionRepository, SessionRepository

logger = logging.getLogger(__name__)

InstanceFactory = Callable[[str], ServerInstance]


class InstanceHost:
    """Owns the live ``ServerInstance`` objects of a hosting process."""

    def __init__(
        self,
        repository: Optional[SessionRepository] = None,
        *,
        settings: Optional[ServerSettings] = None,
        instance_factory: Optional[InstanceFactory] = None,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.repository: SessionRepository = repository or InMemorySessionRepository()
        self._factory = instance_factory or self._default_factory
        self._instances: Dict[str, ServerInstance] = {}
        self._lock = asyncio.Lock()

    def _default_factory(self, session_id: str) -> ServerInstance:
        return ServerInstance(session_id, settings=self.settings)

    @property
    def live_sessions(self) -> List[str]:
        return list(self._instances)

    async def get_instance(self, session_id: str) -> ServerInstance:
        """Return the live instance for ``session_id``, resuming it if persisted."""
        async with self._lock:
            instance = self._instances.get(session_id)
            if instance is not None:
                instance.touch()
                return instance

            instance = self._factory(session_id)
            self._instances[session_id] = instance
            session = await self.repository.load(session_id)

        if session is not None:
            logger.info("event=session_resume session_id=%s", session_id)
            await instance.resume(session)
        else:
            instance.touch()
        return instance

    async def hibernate(self, session_id: str) -> bool:
        """Capture, persist and discard one instance. Returns False if not live."""
        async with self._lock:
            instance = self._instances.pop(session_id, None)
        if instance is None:
            return False

        session = instance.capture()
        await self.repository.save(session)
        await instance.close()
        logger.info("event=session_hibernated session_id=%s", session_id)
        return True

    async def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Hibernate every instance idle past the threshold."""
        idle = [
            session_id
            for session_id, instance in list(self._instances.items())
            if instance.hibernation.should_hibernate(now)
        ]
        evicted = []
        for session_id in idle:
            if await self.hibernate(session_id):
                evicted.append(session_id)
        return evicted

    async def close(self) -> None:
        """Hibernate every live instance."""
        for session_id in list(self._instances):
            await self.hibernate(session_id)
