"""Keyword search feed fetcher."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, urlencode

import feedparser
import httpx
from httpx import AsyncClient

from news_agent.config import FeedSettings
from news_agent.errors import FetchError, ParseError
from news_agent.logging import get_logger
from news_agent.services.metrics import metrics
from news_agent.services.pipeline_types import CandidateItem


DEFAULT_SOURCE_LABEL = "Google News"


class FeedFetcher:
    """Fetches one keyword x region x language query and returns fresh items.

    Transient failures (transport errors, non-200 status) are retried up to
    ``settings.max_attempts`` times with a linear backoff of
    ``attempt * retry_base_delay_seconds``. An empty but well-formed feed is a
    valid result and is never retried. A malformed payload yields no items.
    """

    def __init__(self, settings: FeedSettings, *, http: AsyncClient) -> None:
        self._settings = settings
        self._http = http
        self._log = get_logger(__name__)

    def build_url(self, keyword: str, region: str, language: str | None = None) -> str:
        keyword = (keyword or "").strip()
        region = (region or "").strip()
        if not keyword:
            raise ValueError("keyword must not be empty")
        if not region:
            raise ValueError("region must not be empty")
        language = (language or "").strip() or self._settings.language
        query = urlencode(
            {
                "q": keyword,
                "hl": language,
                "gl": region,
                "ceid": f"{region}:{language}",
            },
            quote_via=quote,
        )
        return f"{self._settings.search_url}?{query}"

    async def fetch(
        self,
        keyword: str,
        region: str,
        language: str | None = None,
        *,
        now: datetime | None = None,
    ) -> list[CandidateItem]:
        url = self.build_url(keyword, region, language)
        text = await self._get_with_retry(url)
        try:
            return parse_feed(
                text,
                now=now or datetime.now(timezone.utc),
                freshness=timedelta(hours=self._settings.freshness_hours),
            )
        except ParseError:
            self._log.warning("feed.parse_failed", url=url, keyword=keyword, region=region)
            metrics.inc_counter("feed_parse_errors_total")
            return []

    async def _get_with_retry(self, url: str) -> str:
        max_attempts = self._settings.max_attempts
        last_error = ""
        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._http.get(url, timeout=self._settings.timeout_seconds)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if response.status_code == 200:
                    return response.text
                last_error = f"status {response.status_code}"

            self._log.warning(
                "feed.fetch_attempt_failed",
                url=url,
                attempt=attempt,
                max_attempts=max_attempts,
                error=last_error,
            )
            if attempt >= max_attempts:
                break
            metrics.inc_counter("feed_fetch_retries_total")
            await asyncio.sleep(attempt * self._settings.retry_base_delay_seconds)

        raise FetchError(
            f"feed fetch failed after {max_attempts} attempts: {last_error}",
            url=url,
            attempts=max_attempts,
        )


def parse_feed(text: str, *, now: datetime, freshness: timedelta) -> list[CandidateItem]:
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries and not feed.get("feed"):
        raise ParseError(str(getattr(feed, "bozo_exception", "malformed feed")))

    oldest = now - freshness
    items: list[CandidateItem] = []
    for entry in feed.entries:
        link = (entry.get("link") or "").strip()
        title = (entry.get("title") or "").strip()
        if not link or not title:
            continue
        published_at = _parse_published(entry)
        if published_at is None or published_at < oldest:
            continue
        items.append(
            CandidateItem(
                title=title,
                url=link,
                published_at=published_at,
                source=_source_label(entry),
            )
        )
    return items


def _parse_published(entry) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if value:
            return datetime(*value[:6], tzinfo=timezone.utc)
    return None


def _source_label(entry) -> str:
    source = entry.get("source")
    if isinstance(source, dict):
        title = (source.get("title") or "").strip()
        if title:
            return title
    return DEFAULT_SOURCE_LABEL
