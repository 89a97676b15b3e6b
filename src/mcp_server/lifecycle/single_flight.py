"""Single-flight execution for async work.

A ``SingleFlight`` holds at most one pending attempt. Concurrent callers that
arrive while an attempt is pending share it instead of starting their own. The
handle is installed synchronously, before the first suspension point, so every
caller that observed "not started" in the same event-loop turn attaches to the
same attempt. The handle is cleared when the attempt finishes, whatever the
outcome, so a later call may retry.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SingleFlight(Generic[T]):
    """Absent, pending, or resolved: one shared attempt at a time."""

    def __init__(self, name: str = "single_flight") -> None:
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self._started = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    @property
    def attempts_started(self) -> int:
        """Number of underlying attempts started over this object's life."""
        return self._started

    def start(self, factory: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """Return the pending attempt, creating it from ``factory`` if absent."""
        if self._task is not None:
            return self._task

        self._started += 1

        async def _run() -> T:
            try:
                return await factory()
            finally:
                self._task = None

        task = asyncio.ensure_future(_run())
        self._task = task
        # Retrieve the exception so an attempt nobody awaits (every caller
        # timed out) does not log "exception was never retrieved".
        task.add_done_callback(self._consume_exception)
        return task

    def _consume_exception(self, task: "asyncio.Task[T]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("%s attempt finished with %s: %s", self._name, type(exc).__name__, exc)

    async def run(
        self,
        factory: Callable[[], Awaitable[T]],
        timeout_seconds: Optional[float] = None,
    ) -> T:
        """Join (or start) the attempt and wait for its outcome.

        ``timeout_seconds`` bounds only this caller's wait. The attempt is
        shielded and keeps running for later callers; ``asyncio.TimeoutError``
        is raised to the caller that gave up.
        """
        task = self.start(factory)
        if timeout_seconds is None or timeout_seconds <= 0:
            return await asyncio.shield(task)
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_seconds)

    async def wait(self) -> None:
        """Wait for a pending attempt (if any) to finish, ignoring its outcome."""
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
