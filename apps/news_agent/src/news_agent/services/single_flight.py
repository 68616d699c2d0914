"""Process-wide mutual exclusion for ingestion and delivery tasks."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from news_agent.errors import LockContention
from news_agent.logging import get_logger


class SingleFlightGuard:
    def __init__(self, *, timeout_seconds: float = 30.0) -> None:
        self._lock = asyncio.Lock()
        self._timeout_seconds = timeout_seconds
        self._holder: str | None = None
        self._log = get_logger(__name__)

    @property
    def holder(self) -> str | None:
        return self._holder

    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, task_name: str) -> AsyncIterator[None]:
        """Hold the guard for the duration of the block.

        Raises ``LockContention`` if it cannot be acquired within the timeout.
        Waiters are not queued beyond the timeout.
        """
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._timeout_seconds)
        except TimeoutError as exc:
            raise LockContention(task_name, timeout_seconds=self._timeout_seconds) from exc
        self._holder = task_name
        self._log.debug("single_flight.acquired", task=task_name)
        try:
            yield
        finally:
            self._holder = None
            self._lock.release()
            self._log.debug("single_flight.released", task=task_name)
