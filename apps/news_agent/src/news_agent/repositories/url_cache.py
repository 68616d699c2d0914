"""Shared URL cache repository."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from news_agent.db.models import UrlCacheEntry


class UrlCacheRepository:
    async def get(self, session: AsyncSession, key: str, *, now: datetime) -> str | None:
        result = await session.execute(
            select(UrlCacheEntry.value)
            .where(UrlCacheEntry.key == key)
            .where(UrlCacheEntry.expires_at > now)
        )
        return result.scalar_one_or_none()

    async def put(
        self,
        session: AsyncSession,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        now: datetime,
    ) -> UrlCacheEntry:
        expires_at = now + timedelta(seconds=ttl_seconds)
        entry = await session.get(UrlCacheEntry, key)
        if entry is None:
            entry = UrlCacheEntry(key=key, value=value, expires_at=expires_at)
            session.add(entry)
        else:
            entry.value = value
            entry.expires_at = expires_at
        await session.flush()
        return entry

    async def delete_expired(self, session: AsyncSession, *, now: datetime) -> int:
        result = await session.execute(
            delete(UrlCacheEntry).where(UrlCacheEntry.expires_at <= now)
        )
        return int(result.rowcount or 0)

    async def delete(self, session: AsyncSession, key: str) -> int:
        result = await session.execute(delete(UrlCacheEntry).where(UrlCacheEntry.key == key))
        return int(result.rowcount or 0)
