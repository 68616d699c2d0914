from __future__ import annotations

import asyncio
import sys
from contextlib import suppress

from aiogram import Bot, Dispatcher
from httpx import AsyncClient
from pydantic import ValidationError

from telegram_publisher import TelegramPublisher
from news_agent import __version__
from news_agent.adapters import (
    PublisherAdapter,
    SlackWebhookAlertSender,
    SmtpDigestSender,
    TelegramAlertSender,
)
from news_agent.config import Settings
from news_agent.db.session import create_engine, create_schema, create_session_factory
from news_agent.logging import configure_logging, get_logger
from news_agent.monitoring import configure_sentry
from news_agent.ports.senders import AlertSenderPort
from news_agent.services.digest import DigestDeliveryService
from news_agent.services.feed_fetcher import FeedFetcher
from news_agent.services.health import HealthServer
from news_agent.services.ingestion import IngestionRunner
from news_agent.services.notifications import NotificationRouter, StatusUpdateService
from news_agent.services.scheduler import SchedulerRunner
from news_agent.services.single_flight import SingleFlightGuard
from news_agent.services.tasks import NewsAgentTasks, TaskExecutor
from news_agent.telegram.handlers.commands import CommandsContext, create_commands_router

USER_AGENT = f"news-agent/{__version__}"


def build_alert_sender(
    settings: Settings,
    *,
    http: AsyncClient,
    publisher: PublisherAdapter | None,
) -> AlertSenderPort | None:
    alerts = settings.alerts
    if alerts.webhook_url:
        return SlackWebhookAlertSender(
            alerts.webhook_url,
            http=http,
            timeout_seconds=alerts.timeout_seconds,
        )
    if publisher is not None and alerts.telegram_chat_id is not None:
        return TelegramAlertSender(
            publisher,
            chat_id=alerts.telegram_chat_id,
            topic_id=alerts.telegram_topic_id,
        )
    return None


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


async def _run() -> int:
    try:
        settings = Settings()
    except ValidationError as exc:
        print("Invalid configuration:", file=sys.stderr)
        print(exc, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    configure_sentry(dsn=settings.sentry_dsn, release=__version__)
    log = get_logger(__name__)
    log.info("boot", settings=settings.public_dict())

    engine = create_engine(settings.database_url)
    await create_schema(engine)
    session_factory = create_session_factory(engine)

    http = AsyncClient(headers={"User-Agent": USER_AGENT}, follow_redirects=True)

    bot: Bot | None = None
    publisher: PublisherAdapter | None = None
    if settings.bot_enabled:
        bot = Bot(token=settings.bot_token)
        publisher = PublisherAdapter(TelegramPublisher(bot))

    guard = SingleFlightGuard(timeout_seconds=settings.scheduler.lock_timeout_seconds)
    ingestion = IngestionRunner(
        settings=settings,
        session_factory=session_factory,
        fetcher=FeedFetcher(settings.feed, http=http),
    )
    delivery = DigestDeliveryService(
        settings=settings,
        session_factory=session_factory,
        sender=SmtpDigestSender(settings.mail),
    )
    tasks = NewsAgentTasks(
        executor=TaskExecutor(guard),
        ingestion=ingestion,
        delivery=delivery,
    )
    router = NotificationRouter(
        build_alert_sender(settings, http=http, publisher=publisher),
        min_rating=settings.alerts.min_rating,
    )
    status_updates = StatusUpdateService(session_factory=session_factory, router=router)

    health_server: HealthServer | None = None
    if settings.health.enabled:
        health_server = HealthServer(settings.health, guard=guard)
        await health_server.start()

    ingestion_task = None
    delivery_task = None
    if settings.scheduler.enabled:
        scheduler = SchedulerRunner(tasks=tasks, settings=settings.scheduler)
        ingestion_task = asyncio.create_task(scheduler.run_ingestion())
        delivery_task = asyncio.create_task(scheduler.run_delivery())

    try:
        if bot is not None and publisher is not None:
            dispatcher = Dispatcher()
            dispatcher.include_router(
                create_commands_router(
                    CommandsContext(
                        settings=settings,
                        publisher=publisher,
                        tasks=tasks,
                        status_updates=status_updates,
                    )
                )
            )
            await dispatcher.start_polling(bot)
        else:
            log.info("bot_disabled")
            await asyncio.Event().wait()
    finally:
        await _cancel(ingestion_task)
        await _cancel(delivery_task)
        if health_server:
            await health_server.stop()
        if bot is not None:
            await bot.session.close()
        await http.aclose()
        await engine.dispose()

    return 0


def main() -> int:
    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
