"""Article repository."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from news_agent.db.models import Article
from news_agent.services.pipeline_types import NewArticle, RatedUrl, StatusUpdate


INSERT_CHUNK_SIZE = 1000


class ArticleRepository:
    async def get_by_url(self, session: AsyncSession, url: str) -> Article | None:
        result = await session.execute(select(Article).where(Article.url == url))
        return result.scalar_one_or_none()

    async def insert_new(self, session: AsyncSession, articles: Sequence[NewArticle]) -> int:
        """Insert articles, skipping URLs that are already stored. Returns rows inserted.

        Rows are sent in chunks of ``INSERT_CHUNK_SIZE`` on the caller's transaction;
        asyncpg rejects statements with more than 32767 bind parameters.
        """
        inserted = 0
        for start in range(0, len(articles), INSERT_CHUNK_SIZE):
            inserted += await self._insert_chunk(session, articles[start : start + INSERT_CHUNK_SIZE])
        return inserted

    async def _insert_chunk(self, session: AsyncSession, articles: Sequence[NewArticle]) -> int:
        values = [
            {
                "url": item.url,
                "title": item.title,
                "source": item.source,
                "published_at": item.published_at,
                "keyword": item.keyword,
                "campaign_tag": item.campaign_tag,
            }
            for item in articles
        ]
        stmt = (
            insert(Article)
            .values(values)
            .on_conflict_do_nothing(index_elements=[Article.url])
            .returning(Article.id)
        )
        result = await session.execute(stmt)
        return len(result.scalars().all())

    async def list_recent_urls(self, session: AsyncSession, *, limit: int) -> list[str]:
        if limit <= 0:
            return []
        result = await session.execute(
            select(Article.url).order_by(Article.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_recent_ratings(self, session: AsyncSession, *, limit: int) -> list[RatedUrl]:
        result = await session.execute(
            select(Article.url, Article.rating)
            .where(Article.rating.is_not(None))
            .where(Article.rating > 0)
            .order_by(Article.id.desc())
            .limit(limit)
        )
        return [RatedUrl(url=url, rating=rating) for url, rating in result.all()]

    async def list_unsent(self, session: AsyncSession, *, limit: int) -> list[Article]:
        result = await session.execute(
            select(Article)
            .where(Article.sent.is_(False))
            .order_by(Article.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_sent(self, session: AsyncSession, article_ids: Sequence[int]) -> int:
        if not article_ids:
            return 0
        result = await session.execute(
            update(Article)
            .where(Article.id.in_(list(article_ids)))
            .where(Article.sent.is_(False))
            .values(sent=True)
        )
        return int(result.rowcount or 0)

    async def update_status(self, session: AsyncSession, update_: StatusUpdate) -> Article | None:
        article = await self.get_by_url(session, update_.url)
        if article is None:
            return None
        if update_.rating is not None:
            article.rating = update_.rating
        if update_.comment is not None:
            article.comment = update_.comment
        if update_.read is not None:
            article.is_read = update_.read
        await session.flush()
        return article
