"""Hibernation decisions and wake-up after restore."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from mcp_server.lifecycle.coordinator import LifecycleCoordinator
from mcp_server.session.models import utc_now
from mcp_server.session.store import SessionStateStore

logger = logging.getLogger(__name__)

DEFAULT_HIBERNATION_THRESHOLD_SECONDS = 30 * 60


class HibernationManager:
    """Decides when an instance is idle and re-establishes connections on wake."""

    def __init__(
        self,
        coordinator: LifecycleCoordinator,
        store: SessionStateStore,
        threshold_seconds: float = DEFAULT_HIBERNATION_THRESHOLD_SECONDS,
    ) -> None:
        self._coordinator = coordinator
        self._store = store
        self.threshold = timedelta(seconds=threshold_seconds)

    def should_hibernate(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return now - self._store.last_active_time > self.threshold

    async def wake_up(self) -> None:
        """Refresh activity and reconnect if restored state claims a connection.

        Failures land in discovery mode the same way a cold start does.
        """
        self._store.touch()
        if not self._coordinator.needs_reconnect:
            return
        logger.info("event=wake_up_reconnect session_id=%s", self._store.session_id)
        await self._coordinator.ensure_initialized(
            self._coordinator.default_options(require_auth=False, allow_discovery_mode=True)
        )
