"""Campaign selection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from news_agent.config import CampaignSettings


NORMAL_CAMPAIGN_TAG = ""


@dataclass(slots=True, frozen=True)
class KeywordQuery:
    keyword: str
    campaign_tag: str = NORMAL_CAMPAIGN_TAG


def active_campaigns(
    campaigns: Iterable[CampaignSettings], today: date
) -> list[CampaignSettings]:
    return [campaign for campaign in campaigns if campaign.keywords and campaign.is_active(today)]


def local_today(timezone_name: str, *, now: datetime | None = None) -> date:
    tz = ZoneInfo(timezone_name)
    if now is None:
        return datetime.now(tz).date()
    return now.astimezone(tz).date()


def build_queries(
    keywords: Iterable[str], campaigns: Iterable[CampaignSettings]
) -> list[KeywordQuery]:
    """Normal keywords first (empty tag), then each campaign's keywords tagged with its name."""
    queries: list[KeywordQuery] = []
    seen: set[KeywordQuery] = set()
    for keyword in keywords:
        _append_query(queries, seen, KeywordQuery(keyword=keyword.strip()))
    for campaign in campaigns:
        for keyword in campaign.keywords:
            _append_query(
                queries,
                seen,
                KeywordQuery(keyword=keyword.strip(), campaign_tag=campaign.name),
            )
    return queries


def _append_query(queries: list[KeywordQuery], seen: set[KeywordQuery], query: KeywordQuery) -> None:
    if not query.keyword or query in seen:
        return
    seen.add(query)
    queries.append(query)
