"""Feed ingestion pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_agent.config import CampaignSettings, Settings
from news_agent.errors import FetchError
from news_agent.logging import get_logger
from news_agent.monitoring import add_sentry_breadcrumb, capture_sentry_exception
from news_agent.repositories.articles import ArticleRepository
from news_agent.repositories.url_cache import UrlCacheRepository
from news_agent.services.campaigns import active_campaigns, build_queries, local_today
from news_agent.services.dedup import CacheTier, DedupCache, MemoryTier, SharedCacheTier
from news_agent.services.feed_fetcher import FeedFetcher
from news_agent.services.metrics import metrics
from news_agent.services.pipeline_types import NewArticle
from news_agent.services.reputation import ReputationFilter


@dataclass(slots=True)
class IngestionStats:
    queries_total: int = 0
    entries_total: int = 0
    created: int = 0
    duplicates: int = 0
    skipped_blocked: int = 0
    fetch_errors: int = 0
    already_stored: int = 0

    def has_activity(self) -> bool:
        return any(
            (
                self.entries_total,
                self.created,
                self.duplicates,
                self.skipped_blocked,
                self.fetch_errors,
            )
        )


class IngestionRunner:
    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        fetcher: FeedFetcher,
        article_repo: ArticleRepository | None = None,
        url_cache_repo: UrlCacheRepository | None = None,
        shared_cache: CacheTier | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._fetcher = fetcher
        self._article_repo = article_repo or ArticleRepository()
        self._url_cache_repo = url_cache_repo or UrlCacheRepository()
        self._shared_cache = shared_cache or SharedCacheTier(
            session_factory,
            ttl_seconds=settings.dedup.cache_ttl_seconds,
            repository=self._url_cache_repo,
        )
        self._log = get_logger(__name__)

    async def run_once(self, *, today: date | None = None) -> IngestionStats:
        today = today or local_today(self._settings.scheduler.timezone)
        return await self.run(
            keywords=self._settings.keywords,
            campaigns=active_campaigns(self._settings.campaigns, today),
            regions=self._settings.feed.regions,
            language=self._settings.feed.language,
        )

    async def run(
        self,
        *,
        keywords: Sequence[str],
        campaigns: Sequence[CampaignSettings],
        regions: Sequence[str],
        language: str | None = None,
    ) -> IngestionStats:
        """Fetch every (keyword, region) pair and store the new, trusted items.

        ``stats.created`` is the number of articles actually stored.
        """
        stats = IngestionStats()
        queries = build_queries(keywords, campaigns)
        regions = [region.strip() for region in regions if region.strip()]
        if not queries or not regions:
            return stats

        dedup, reputation = await self._prepare_filters()
        batch: list[NewArticle] = []
        first_request = True
        for query in queries:
            for region in regions:
                if not first_request:
                    await self._request_delay()
                first_request = False
                stats.queries_total += 1
                try:
                    items = await self._fetcher.fetch(query.keyword, region, language)
                except FetchError as exc:
                    stats.fetch_errors += 1
                    metrics.inc_counter("ingestion_fetch_errors_total")
                    self._log.error(
                        "ingestion.fetch_failed",
                        keyword=query.keyword,
                        campaign=query.campaign_tag or None,
                        region=region,
                        attempts=exc.attempts,
                        error=str(exc),
                    )
                    add_sentry_breadcrumb(
                        category="ingestion",
                        message="feed fetch failed",
                        level="warning",
                        data={"keyword": query.keyword, "region": region},
                    )
                    continue

                for item in items:
                    stats.entries_total += 1
                    if await dedup.exists(item.url):
                        stats.duplicates += 1
                        continue
                    if reputation.is_blocked(item.url):
                        stats.skipped_blocked += 1
                        self._log.info(
                            "ingestion.skipped_low_reputation",
                            url=item.url,
                            keyword=query.keyword,
                        )
                        continue
                    batch.append(
                        NewArticle.from_candidate(
                            item,
                            keyword=query.keyword,
                            campaign_tag=query.campaign_tag,
                        )
                    )
                    await dedup.add(item.url)

        try:
            stats.created = await self._persist(batch)
        except (SQLAlchemyError, OSError) as exc:
            metrics.inc_counter("ingestion_persist_errors_total")
            self._log.error("ingestion.persist_failed", dropped=len(batch), error=str(exc))
            capture_sentry_exception(exc, context={"dropped": len(batch)})
            # URLs were registered while filtering; release them so the next run retries.
            await dedup.discard(item.url for item in batch)
            raise
        stats.already_stored = len(batch) - stats.created
        metrics.inc_counter("ingestion_created_total", value=float(stats.created))
        metrics.inc_counter("ingestion_duplicates_total", value=float(stats.duplicates))
        metrics.inc_counter("ingestion_blocked_total", value=float(stats.skipped_blocked))
        if stats.has_activity():
            self._log.info(
                "ingestion.run_summary",
                queries=stats.queries_total,
                entries=stats.entries_total,
                created=stats.created,
                duplicates=stats.duplicates,
                already_stored=stats.already_stored,
                skipped_blocked=stats.skipped_blocked,
                fetch_errors=stats.fetch_errors,
                dedup_degraded=dedup.degraded,
            )
        return stats

    async def _prepare_filters(self) -> tuple[DedupCache, ReputationFilter]:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                expired = await self._url_cache_repo.delete_expired(session, now=now)
                seed_urls = await self._article_repo.list_recent_urls(
                    session, limit=self._settings.dedup.memory_seed_size
                )
                ratings = []
                if self._settings.reputation.enabled:
                    ratings = await self._article_repo.list_recent_ratings(
                        session, limit=self._settings.reputation.lookback_rows
                    )
        if expired:
            self._log.info("ingestion.url_cache_purged", rows=expired)

        reputation = ReputationFilter.from_settings(ratings, self._settings.reputation)
        blocked = reputation.blocked_domains()
        if blocked:
            self._log.info("ingestion.blocked_domains", domains=blocked)
        dedup = DedupCache([MemoryTier(seed_urls), self._shared_cache])
        return dedup, reputation

    async def _persist(self, batch: list[NewArticle]) -> int:
        if not batch:
            return 0
        async with self._session_factory() as session:
            async with session.begin():
                return await self._article_repo.insert_new(session, batch)

    async def _request_delay(self) -> None:
        delay = self._settings.feed.request_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)
