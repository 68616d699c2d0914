"""Rating updates and high-rating alerts."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_agent.logging import get_logger
from news_agent.monitoring import capture_sentry_exception
from news_agent.ports.senders import AlertSenderPort
from news_agent.repositories.articles import ArticleRepository
from news_agent.services.metrics import metrics
from news_agent.services.pipeline_types import StatusUpdate


MAX_RATING = 5


@dataclass(slots=True, frozen=True)
class RatingAlert:
    url: str
    rating: int
    comment: str | None = None
    title: str | None = None
    source: str | None = None


class NotificationRouter:
    def __init__(self, sender: AlertSenderPort | None, *, min_rating: int = 4) -> None:
        self._sender = sender
        self._min_rating = min_rating
        self._log = get_logger(__name__)

    def should_alert(self, update: StatusUpdate) -> bool:
        return update.rating is not None and update.rating >= self._min_rating

    async def route(
        self,
        update: StatusUpdate,
        *,
        title: str | None = None,
        source: str | None = None,
    ) -> bool:
        """Send a high-rating alert if the update qualifies. Never raises on send failure."""
        if not self.should_alert(update):
            return False
        if self._sender is None:
            self._log.info("notifications.no_alert_channel", url=update.url)
            return False
        alert = RatingAlert(
            url=update.url,
            rating=int(update.rating),
            comment=update.comment,
            title=title,
            source=source,
        )
        try:
            await self._sender.send_alert(alert)
        except Exception as exc:
            metrics.inc_counter("alerts_failed_total")
            self._log.exception("notifications.alert_failed", url=update.url)
            capture_sentry_exception(exc, context={"url": update.url})
            return False
        metrics.inc_counter("alerts_sent_total")
        self._log.info("notifications.alert_sent", url=update.url, rating=alert.rating)
        return True


@dataclass(slots=True)
class StatusUpdateResult:
    found: bool
    alerted: bool = False


class StatusUpdateService:
    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        router: NotificationRouter,
        article_repo: ArticleRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._router = router
        self._article_repo = article_repo or ArticleRepository()
        self._log = get_logger(__name__)

    async def apply(self, update: StatusUpdate) -> StatusUpdateResult:
        validate_status_update(update)
        async with self._session_factory() as session:
            async with session.begin():
                article = await self._article_repo.update_status(session, update)
        if article is None:
            self._log.warning("status_update.article_not_found", url=update.url)
            return StatusUpdateResult(found=False)
        self._log.info(
            "status_update.applied",
            url=update.url,
            rating=update.rating,
            has_comment=update.comment is not None,
            read=update.read,
        )
        alerted = await self._router.route(update, title=article.title, source=article.source)
        return StatusUpdateResult(found=True, alerted=alerted)


def validate_status_update(update: StatusUpdate) -> None:
    if not update.url.strip():
        raise ValueError("url must not be empty")
    if update.is_empty():
        raise ValueError("status update has nothing to change")
    if update.rating is not None and not 0 <= update.rating <= MAX_RATING:
        raise ValueError(f"rating must be between 0 and {MAX_RATING}")
