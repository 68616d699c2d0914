from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest
from sqlalchemy.dialects.postgresql import asyncpg as pg_asyncpg

from news_agent.repositories.articles import INSERT_CHUNK_SIZE, ArticleRepository
from news_agent.services.pipeline_types import NewArticle, StatusUpdate

ASYNCPG_MAX_PARAMS = 32767


def _compile(stmt):  # noqa: ANN001, ANN202
    return stmt.compile(dialect=pg_asyncpg.dialect())


class _Scalars:
    def __init__(self, rows: list) -> None:
        self._rows = rows

    def all(self) -> list:
        return list(self._rows)


class _Result:
    def __init__(self, rows: list | None = None, *, rowcount: int = 0, one=None) -> None:  # noqa: ANN001
        self._rows = rows or []
        self.rowcount = rowcount
        self._one = one

    def scalars(self) -> _Scalars:
        return _Scalars(self._rows)

    def scalar_one_or_none(self):  # noqa: ANN201
        return self._one


@dataclass
class _Session:
    statements: list = field(default_factory=list)
    article: object | None = None
    flushes: int = 0
    rowcount: int = 0

    async def execute(self, stmt):  # noqa: ANN001, ANN201
        self.statements.append(stmt)
        if stmt.is_insert:
            rows = _compile(stmt).params
            count = sum(1 for key in rows if key.startswith("url"))
            return _Result(list(range(count)))
        if stmt.is_update:
            return _Result(rowcount=self.rowcount)
        return _Result(one=self.article)

    async def flush(self) -> None:
        self.flushes += 1


def _articles(count: int) -> list[NewArticle]:
    return [
        NewArticle(
            url=f"https://news.example/{index}",
            title=f"title {index}",
            source="Example",
            published_at=None,
            keyword="AI",
        )
        for index in range(count)
    ]


@pytest.mark.asyncio
async def test_insert_new_splits_large_batches_under_bind_limit() -> None:
    session = _Session()

    created = await ArticleRepository().insert_new(session, _articles(2500))  # type: ignore[arg-type]

    assert created == 2500
    assert len(session.statements) == 3
    params = [len(_compile(stmt).params) for stmt in session.statements]
    assert params == [6 * INSERT_CHUNK_SIZE, 6 * INSERT_CHUNK_SIZE, 6 * 500]
    assert max(params) <= ASYNCPG_MAX_PARAMS


@pytest.mark.asyncio
async def test_insert_new_with_empty_batch_issues_no_statement() -> None:
    session = _Session()

    assert await ArticleRepository().insert_new(session, []) == 0  # type: ignore[arg-type]
    assert session.statements == []


@pytest.mark.asyncio
async def test_insert_skips_conflicting_urls_and_returns_ids() -> None:
    session = _Session()

    await ArticleRepository().insert_new(session, _articles(2))  # type: ignore[arg-type]

    sql = str(_compile(session.statements[0]))
    assert "INSERT INTO articles" in sql
    assert "ON CONFLICT (url) DO NOTHING" in sql
    assert "RETURNING articles.id" in sql


@pytest.mark.asyncio
async def test_mark_sent_only_flips_unsent_rows() -> None:
    session = _Session(rowcount=2)

    marked = await ArticleRepository().mark_sent(session, [1, 2, 3])  # type: ignore[arg-type]

    assert marked == 2
    compiled = _compile(session.statements[0])
    sql = str(compiled).lower()
    assert sql.startswith("update articles set")
    assert "articles.sent is false" in sql
    assert compiled.params["sent"] is True


@pytest.mark.asyncio
async def test_mark_sent_with_no_ids_is_a_no_op() -> None:
    session = _Session()

    assert await ArticleRepository().mark_sent(session, []) == 0  # type: ignore[arg-type]
    assert session.statements == []


@pytest.mark.asyncio
async def test_update_status_never_touches_sent_flag() -> None:
    article = SimpleNamespace(url="https://news.example/1", sent=False, rating=None, comment=None, is_read=False)
    session = _Session(article=article)

    updated = await ArticleRepository().update_status(
        session,  # type: ignore[arg-type]
        StatusUpdate(url="https://news.example/1", rating=5, comment="great", read=True),
    )

    assert updated is article
    assert (article.rating, article.comment, article.is_read) == (5, "great", True)
    assert article.sent is False
    assert session.flushes == 1
    assert [stmt.is_update for stmt in session.statements] == [False]


@pytest.mark.asyncio
async def test_update_status_keeps_unspecified_fields() -> None:
    article = SimpleNamespace(url="https://news.example/1", sent=True, rating=3, comment="old", is_read=False)
    session = _Session(article=article)

    await ArticleRepository().update_status(
        session,  # type: ignore[arg-type]
        StatusUpdate(url="https://news.example/1", read=True),
    )

    assert (article.rating, article.comment, article.is_read, article.sent) == (3, "old", True, True)


@pytest.mark.asyncio
async def test_update_status_for_unknown_url_returns_none() -> None:
    session = _Session()

    result = await ArticleRepository().update_status(
        session,  # type: ignore[arg-type]
        StatusUpdate(url="https://news.example/missing", rating=4),
    )

    assert result is None
    assert session.flushes == 0
