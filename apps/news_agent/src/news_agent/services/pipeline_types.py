"""Value types passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class CandidateItem:
    title: str
    url: str
    published_at: datetime
    source: str


@dataclass(slots=True, frozen=True)
class NewArticle:
    url: str
    title: str
    source: str
    published_at: datetime | None
    keyword: str
    campaign_tag: str = ""

    @classmethod
    def from_candidate(
        cls, item: CandidateItem, *, keyword: str, campaign_tag: str = ""
    ) -> NewArticle:
        return cls(
            url=item.url,
            title=item.title,
            source=item.source,
            published_at=item.published_at,
            keyword=keyword,
            campaign_tag=campaign_tag,
        )


@dataclass(slots=True, frozen=True)
class RatedUrl:
    url: str
    rating: int | None


@dataclass(slots=True, frozen=True)
class StatusUpdate:
    url: str
    rating: int | None = None
    comment: str | None = None
    read: bool | None = None

    def is_empty(self) -> bool:
        return self.rating is None and self.comment is None and self.read is None
