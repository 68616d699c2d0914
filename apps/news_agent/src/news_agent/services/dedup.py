"""Two-tier URL dedup cache.

Tiers are queried in order until one reports a hit. The in-memory tier is
seeded once per run from the most recent stored URLs and is authoritative for
URLs added during the run. The shared tier keeps ``md5(url)`` keys with a TTL
so URLs that fell out of the storage lookback are still recognised for a while.
A failing shared tier is disabled for the remainder of the run.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from news_agent.errors import CacheUnavailable
from news_agent.logging import get_logger
from news_agent.repositories.url_cache import UrlCacheRepository
from news_agent.services.metrics import metrics
from news_agent.utils.url import url_cache_key


CACHE_SENTINEL = "1"


class CacheTier(Protocol):
    name: str

    async def lookup(self, url: str) -> bool: ...

    async def insert(self, url: str) -> None: ...

    async def remove(self, url: str) -> None: ...


class MemoryTier:
    name = "memory"

    def __init__(self, seed_urls: Iterable[str] = ()) -> None:
        self._urls: set[str] = {url for url in seed_urls if url}

    def __len__(self) -> int:
        return len(self._urls)

    async def lookup(self, url: str) -> bool:
        return url in self._urls

    async def insert(self, url: str) -> None:
        self._urls.add(url)

    async def remove(self, url: str) -> None:
        self._urls.discard(url)


class SharedCacheTier:
    name = "shared"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ttl_seconds: int,
        repository: UrlCacheRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ttl_seconds = ttl_seconds
        self._repository = repository or UrlCacheRepository()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def lookup(self, url: str) -> bool:
        try:
            async with self._session_factory() as session:
                value = await self._repository.get(session, url_cache_key(url), now=self._clock())
        except (SQLAlchemyError, OSError) as exc:
            raise CacheUnavailable(f"cache read failed: {exc}") from exc
        return value is not None

    async def insert(self, url: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._repository.put(
                        session,
                        url_cache_key(url),
                        CACHE_SENTINEL,
                        ttl_seconds=self._ttl_seconds,
                        now=self._clock(),
                    )
        except (SQLAlchemyError, OSError) as exc:
            raise CacheUnavailable(f"cache write failed: {exc}") from exc

    async def remove(self, url: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._repository.delete(session, url_cache_key(url))
        except (SQLAlchemyError, OSError) as exc:
            raise CacheUnavailable(f"cache delete failed: {exc}") from exc


class DedupCache:
    def __init__(self, tiers: Sequence[CacheTier]) -> None:
        if not tiers:
            raise ValueError("DedupCache requires at least one tier")
        self._tiers = list(tiers)
        self._disabled: set[str] = set()
        self._log = get_logger(__name__)

    @property
    def degraded(self) -> bool:
        return bool(self._disabled)

    async def exists(self, url: str) -> bool:
        for tier in self._active_tiers():
            try:
                if await tier.lookup(url):
                    return True
            except CacheUnavailable:
                self._disable(tier, operation="lookup")
        return False

    async def add(self, url: str) -> None:
        for tier in self._active_tiers():
            try:
                await tier.insert(url)
            except CacheUnavailable:
                self._disable(tier, operation="insert")

    async def discard(self, urls: Iterable[str]) -> None:
        """Forget URLs that were registered but never stored."""
        for url in urls:
            for tier in self._active_tiers():
                try:
                    await tier.remove(url)
                except CacheUnavailable:
                    self._disable(tier, operation="remove")

    def _active_tiers(self) -> list[CacheTier]:
        return [tier for tier in self._tiers if tier.name not in self._disabled]

    def _disable(self, tier: CacheTier, *, operation: str) -> None:
        self._disabled.add(tier.name)
        metrics.inc_counter("dedup_cache_unavailable_total", labels={"tier": tier.name})
        self._log.exception(
            "dedup.cache_tier_disabled",
            tier=tier.name,
            operation=operation,
        )
