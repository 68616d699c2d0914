"""Source reputation computed from user ratings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from news_agent.config import ReputationSettings
from news_agent.services.pipeline_types import RatedUrl
from news_agent.utils.url import extract_hostname


MIN_RATING = 1
MAX_RATING = 5


@dataclass(slots=True)
class DomainReputation:
    rating_sum: int = 0
    rating_count: int = 0

    @property
    def mean(self) -> float | None:
        if self.rating_count == 0:
            return None
        return self.rating_sum / self.rating_count

    def add(self, rating: int) -> None:
        self.rating_sum += rating
        self.rating_count += 1


class ReputationFilter:
    """Blocks domains with enough ratings and a mean strictly below the threshold.

    The snapshot is taken at construction and never refreshed. Unrated
    domains and URLs without a parseable hostname are never blocked.
    """

    def __init__(
        self,
        ratings: Iterable[RatedUrl],
        *,
        min_ratings: int = 2,
        block_below: float = 2.0,
    ) -> None:
        self._min_ratings = min_ratings
        self._block_below = block_below
        self._domains: dict[str, DomainReputation] = {}
        for item in ratings:
            if item.rating is None or not MIN_RATING <= item.rating <= MAX_RATING:
                continue
            domain = extract_hostname(item.url)
            if domain is None:
                continue
            self._domains.setdefault(domain, DomainReputation()).add(int(item.rating))

    @classmethod
    def from_settings(
        cls, ratings: Iterable[RatedUrl], settings: ReputationSettings
    ) -> ReputationFilter:
        if not settings.enabled:
            ratings = ()
        return cls(
            ratings,
            min_ratings=settings.min_ratings,
            block_below=settings.block_below,
        )

    def reputation(self, domain: str) -> DomainReputation | None:
        return self._domains.get(domain.lower())

    def is_blocked(self, url: str) -> bool:
        domain = extract_hostname(url)
        if domain is None:
            return False
        stats = self._domains.get(domain)
        if stats is None or stats.rating_count < self._min_ratings:
            return False
        return stats.mean < self._block_below

    def blocked_domains(self) -> list[str]:
        return sorted(
            domain
            for domain, stats in self._domains.items()
            if stats.rating_count >= self._min_ratings and stats.mean < self._block_below
        )
