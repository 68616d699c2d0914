"""Digest batching and delivery."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_agent.config import CampaignSettings, Settings
from news_agent.errors import DeliveryError
from news_agent.logging import get_logger
from news_agent.monitoring import add_sentry_breadcrumb
from news_agent.ports.senders import DigestSenderPort
from news_agent.repositories.articles import ArticleRepository
from news_agent.services.campaigns import active_campaigns
from news_agent.services.metrics import metrics
from news_agent.services.rendering import campaign_subject, digest_subject


class DigestArticle(Protocol):
    id: int
    url: str
    title: str
    source: str | None
    published_at: datetime | None
    keyword: str
    campaign_tag: str


@dataclass(slots=True)
class Digest:
    title: str
    groups: dict[str, list[DigestArticle]]
    generated_at: datetime
    footer: str | None = None

    @property
    def articles(self) -> list[DigestArticle]:
        return [article for items in self.groups.values() for article in items]

    @property
    def total(self) -> int:
        return sum(len(items) for items in self.groups.values())


@dataclass(slots=True)
class CampaignBatch:
    campaign: CampaignSettings
    articles: list[DigestArticle]


@dataclass(slots=True)
class DigestPlan:
    default_groups: dict[str, list[DigestArticle]] = field(default_factory=dict)
    campaign_batches: list[CampaignBatch] = field(default_factory=list)
    deferred: list[DigestArticle] = field(default_factory=list)


@dataclass(slots=True)
class DeliveryResult:
    sent: int = 0
    campaign_sent: int = 0
    campaign_failures: int = 0
    remaining: int = 0

    @property
    def total_sent(self) -> int:
        return self.sent + self.campaign_sent


class DigestBatcher:
    def __init__(self, *, max_items_per_group: int = 3, fallback_label: str = "Other") -> None:
        if max_items_per_group < 1:
            raise ValueError("max_items_per_group must be positive")
        self._max_items = max_items_per_group
        self._fallback_label = fallback_label

    def group_key(self, article: DigestArticle) -> str:
        campaign_tag = (article.campaign_tag or "").strip()
        if campaign_tag:
            return campaign_tag
        keyword = (article.keyword or "").strip()
        return keyword or self._fallback_label

    def batch(self, unsent: Iterable[DigestArticle]) -> dict[str, list[DigestArticle]]:
        groups: dict[str, list[DigestArticle]] = {}
        for article in unsent:
            items = groups.setdefault(self.group_key(article), [])
            if len(items) < self._max_items:
                items.append(article)
        return groups

    def plan(
        self,
        unsent: Sequence[DigestArticle],
        campaigns: Iterable[CampaignSettings],
    ) -> DigestPlan:
        """Split unsent articles between active campaign sends and the default digest.

        An article tagged with an active campaign goes only to that campaign's
        batch. Everything else is grouped and capped for the default digest;
        articles over the cap are left for a later delivery.
        """
        by_name = {campaign.name: campaign for campaign in campaigns}
        campaign_articles: dict[str, list[DigestArticle]] = {}
        default_candidates: list[DigestArticle] = []
        for article in unsent:
            tag = (article.campaign_tag or "").strip()
            if tag and tag in by_name:
                campaign_articles.setdefault(tag, []).append(article)
            else:
                default_candidates.append(article)

        default_groups = self.batch(default_candidates)
        included = {id(article) for items in default_groups.values() for article in items}
        return DigestPlan(
            default_groups=default_groups,
            campaign_batches=[
                CampaignBatch(campaign=by_name[name], articles=articles)
                for name, articles in campaign_articles.items()
            ],
            deferred=[article for article in default_candidates if id(article) not in included],
        )


class DigestDeliveryService:
    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        sender: DigestSenderPort,
        batcher: DigestBatcher | None = None,
        article_repo: ArticleRepository | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._sender = sender
        self._batcher = batcher or DigestBatcher(
            max_items_per_group=settings.digest.max_items_per_group,
            fallback_label=settings.digest.fallback_group_label,
        )
        self._article_repo = article_repo or ArticleRepository()
        self._log = get_logger(__name__)

    async def deliver(self, *, now: datetime | None = None) -> DeliveryResult:
        now = now or datetime.now(timezone.utc)
        local_now = now.astimezone(ZoneInfo(self._settings.scheduler.timezone))
        result = DeliveryResult()

        async with self._session_factory() as session:
            async with session.begin():
                unsent = await self._article_repo.list_unsent(
                    session, limit=self._settings.digest.unsent_read_limit
                )
        if not unsent:
            return result

        plan = self._batcher.plan(unsent, active_campaigns(self._settings.campaigns, local_now.date()))
        for batch in plan.campaign_batches:
            if await self._send_campaign(batch, local_now):
                result.campaign_sent += len(batch.articles)
            else:
                result.campaign_failures += 1
                result.remaining += len(batch.articles)

        result.remaining += len(plan.deferred)
        if not plan.default_groups:
            return result

        digest = Digest(
            title="News Briefing",
            groups=plan.default_groups,
            generated_at=local_now,
            footer=self._footer(),
        )
        recipients = list(self._settings.digest.recipients)
        if not recipients:
            raise DeliveryError("no digest recipients configured")
        try:
            await self._sender.send_digest(
                recipients=recipients,
                subject=digest_subject(
                    prefix=self._settings.digest.subject_prefix,
                    user_name=self._settings.digest.user_name,
                    at=local_now,
                ),
                digest=digest,
            )
        except DeliveryError:
            result.remaining += digest.total
            self._log.exception("delivery.digest_failed", articles=digest.total)
            add_sentry_breadcrumb(
                category="delivery",
                message="digest send failed",
                level="error",
                data={"articles": digest.total},
            )
            raise

        result.sent = await self._mark_sent(digest.articles)
        metrics.inc_counter("digest_articles_sent_total", value=float(result.sent))
        self._log.info(
            "delivery.digest_sent",
            groups=len(digest.groups),
            articles=result.sent,
            campaign_articles=result.campaign_sent,
            remaining=result.remaining,
        )
        return result

    async def _send_campaign(self, batch: CampaignBatch, local_now: datetime) -> bool:
        campaign = batch.campaign
        recipients = [campaign.notify_address] if campaign.notify_address else list(
            self._settings.digest.recipients
        )
        digest = Digest(
            title=f"{campaign.name} campaign",
            groups={campaign.name: batch.articles},
            generated_at=local_now,
        )
        try:
            if not recipients:
                raise DeliveryError(f"no recipients for campaign {campaign.name!r}")
            await self._sender.send_digest(
                recipients=recipients,
                subject=campaign_subject(campaign.name, len(batch.articles)),
                digest=digest,
            )
        except DeliveryError:
            metrics.inc_counter("digest_campaign_failures_total")
            self._log.exception("delivery.campaign_failed", campaign=campaign.name)
            return False

        marked = await self._mark_sent(batch.articles)
        metrics.inc_counter(
            "digest_articles_sent_total",
            value=float(marked),
            labels={"campaign": campaign.name},
        )
        self._log.info("delivery.campaign_sent", campaign=campaign.name, articles=marked)
        return True

    async def _mark_sent(self, articles: Sequence[DigestArticle]) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                return await self._article_repo.mark_sent(
                    session, [article.id for article in articles]
                )

    def _footer(self) -> str:
        regions = ",".join(self._settings.feed.regions)
        hours = ",".join(str(hour) for hour in self._settings.scheduler.delivery_hours)
        return f"Region: {regions} | Delivery: {hours}"
