"""One logical server instance and everything it owns."""

import logging
from typing import Iterable, Optional

from mcp_server.config.settings import OverrideSource, ServerSettings
from mcp_server.lifecycle.coordinator import LifecycleCoordinator
from mcp_server.lifecycle.hibernation import HibernationManager
from mcp_server.services.activators import ServiceActivator
from mcp_server.session.models import Session
from mcp_server.session.store import SessionStateStore

logger = logging.getLogger(__name__)


class ServerInstance:
    """Coordinator, session store and hibernation manager for one session.

    Constructing an instance performs no I/O; the backend connects on the
    first tool call that needs it.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        *,
        settings: Optional[ServerSettings] = None,
        config_override: OverrideSource = None,
        activators: Optional[Iterable[ServiceActivator]] = None,
        coordinator: Optional[LifecycleCoordinator] = None,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.coordinator = coordinator or LifecycleCoordinator(
            config_override=config_override,
            activators=activators,
            request_timeout_seconds=self.settings.request_timeout_seconds,
            default_timeout_ms=self.settings.init_timeout_ms,
        )
        self.store = SessionStateStore(self.coordinator, session_id=session_id)
        self.hibernation = HibernationManager(
            self.coordinator,
            self.store,
            threshold_seconds=self.settings.hibernation_threshold_seconds,
        )

    @property
    def session_id(self) -> Optional[str]:
        return self.store.session_id

    def touch(self) -> None:
        self.store.touch()

    def capture(self) -> Session:
        return self.store.capture()

    async def resume(self, session: Session) -> None:
        """Restore a persisted session and wake it up."""
        self.store.restore(session)
        await self.hibernation.wake_up()

    async def close(self) -> None:
        logger.info("event=instance_closed session_id=%s", self.session_id)
        await self.coordinator.close()
