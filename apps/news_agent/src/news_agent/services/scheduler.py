"""Scheduled crawl and delivery loops."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from news_agent.config import SchedulerSettings
from news_agent.logging import get_logger
from news_agent.services.tasks import NewsAgentTasks


class SchedulerRunner:
    def __init__(
        self,
        *,
        tasks: NewsAgentTasks,
        settings: SchedulerSettings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._tasks = tasks
        self._settings = settings
        self._tz = ZoneInfo(settings.timezone)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_delivery_slot: tuple[date, int] | None = None
        self._log = get_logger(__name__)

    async def run_ingestion(self) -> None:
        while True:
            try:
                await self._tasks.crawl()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("scheduler.ingestion_loop_error")
            await asyncio.sleep(self._settings.ingestion_interval_seconds)

    async def run_delivery(self) -> None:
        while True:
            try:
                await self.deliver_if_due()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("scheduler.delivery_loop_error")
            await asyncio.sleep(self._settings.poll_interval_seconds)

    def delivery_slot(self, now: datetime) -> tuple[date, int] | None:
        local_now = now.astimezone(self._tz)
        if local_now.hour not in self._settings.delivery_hours:
            return None
        return local_now.date(), local_now.hour

    async def deliver_if_due(self) -> bool:
        slot = self.delivery_slot(self._clock())
        if slot is None or slot == self._last_delivery_slot:
            return False
        self._last_delivery_slot = slot
        outcome = await self._tasks.send()
        return outcome.ok
