"""Guarded execution of crawl and delivery tasks."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from news_agent.errors import LockContention
from news_agent.logging import bound_task, get_logger
from news_agent.monitoring import add_sentry_breadcrumb, capture_sentry_exception
from news_agent.services.digest import DeliveryResult, DigestDeliveryService
from news_agent.services.ingestion import IngestionRunner, IngestionStats
from news_agent.services.metrics import metrics
from news_agent.services.single_flight import SingleFlightGuard

T = TypeVar("T")

CRAWL_TASK = "crawl"
SEND_TASK = "send"


@dataclass(slots=True)
class TaskOutcome:
    name: str
    ok: bool
    skipped: bool = False
    message: str = ""
    result: object | None = None


class TaskExecutor:
    def __init__(self, guard: SingleFlightGuard) -> None:
        self._guard = guard
        self._log = get_logger(__name__)

    async def execute(
        self,
        name: str,
        func: Callable[[], Awaitable[T]],
        *,
        summarize: Callable[[T], str],
        manual: bool = False,
    ) -> TaskOutcome:
        with bound_task(name, manual=manual) as run_id:
            return await self._run(name, func, summarize=summarize, manual=manual, run_id=run_id)

    async def _run(
        self,
        name: str,
        func: Callable[[], Awaitable[T]],
        *,
        summarize: Callable[[T], str],
        manual: bool,
        run_id: str,
    ) -> TaskOutcome:
        try:
            async with self._guard.hold(name):
                self._log.info("task.started")
                result = await func()
        except LockContention:
            metrics.inc_counter("tasks_skipped_total", labels={"task": name})
            self._log.warning("single_flight.skipped", holder=self._guard.holder)
            return TaskOutcome(
                name=name,
                ok=False,
                skipped=True,
                message="Skipped: another task is running.",
            )
        except Exception as exc:
            metrics.inc_counter("tasks_failed_total", labels={"task": name})
            self._log.exception("task.failed")
            add_sentry_breadcrumb(
                category="task",
                message=f"{name} failed",
                level="error",
            )
            capture_sentry_exception(exc, context={"task": name, "manual": manual, "run_id": run_id})
            return TaskOutcome(
                name=name,
                ok=False,
                message=f"{name.capitalize()} failed: {exc}",
            )

        message = summarize(result)
        self._log.info("task.finished", summary=message)
        return TaskOutcome(name=name, ok=True, message=message, result=result)


class NewsAgentTasks:
    """Crawl and send entry points shared by the scheduler and manual commands."""

    def __init__(
        self,
        *,
        executor: TaskExecutor,
        ingestion: IngestionRunner,
        delivery: DigestDeliveryService,
    ) -> None:
        self._executor = executor
        self._ingestion = ingestion
        self._delivery = delivery

    async def crawl(self, *, manual: bool = False) -> TaskOutcome:
        return await self._executor.execute(
            CRAWL_TASK,
            self._ingestion.run_once,
            summarize=render_crawl_summary,
            manual=manual,
        )

    async def send(self, *, manual: bool = False) -> TaskOutcome:
        return await self._executor.execute(
            SEND_TASK,
            self._delivery.deliver,
            summarize=render_send_summary,
            manual=manual,
        )


def render_crawl_summary(stats: IngestionStats) -> str:
    text = f"Crawl finished: {stats.created} new articles"
    details = []
    if stats.duplicates:
        details.append(f"{stats.duplicates} duplicates")
    if stats.skipped_blocked:
        details.append(f"{stats.skipped_blocked} blocked")
    if stats.fetch_errors:
        details.append(f"{stats.fetch_errors} failed queries")
    if details:
        text += f" ({', '.join(details)})"
    return text + "."


def render_send_summary(result: DeliveryResult) -> str:
    if result.total_sent == 0 and result.remaining == 0:
        return "Send finished: nothing to deliver."
    text = f"Send finished: {result.sent} articles in digest"
    if result.campaign_sent:
        text += f", {result.campaign_sent} in campaign reports"
    if result.campaign_failures:
        text += f", {result.campaign_failures} campaign sends failed"
    if result.remaining:
        text += f", {result.remaining} left for later"
    return text + "."
