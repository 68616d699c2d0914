from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from news_agent.services.notifications import StatusUpdateResult
from news_agent.services.pipeline_types import StatusUpdate
from news_agent.services.tasks import TaskOutcome
from news_agent.telegram.handlers.commands import (
    CommandsContext,
    create_commands_router,
    parse_rate_args,
)


@dataclass
class _PublisherSpy:
    sent: list[dict] = field(default_factory=list)

    async def send_text(self, *, chat_id: int, topic_id: int | None, text: str) -> None:
        self.sent.append({"chat_id": chat_id, "topic_id": topic_id, "text": text})


@dataclass
class _TasksSpy:
    calls: list[tuple[str, bool]] = field(default_factory=list)

    async def crawl(self, *, manual: bool = False) -> TaskOutcome:
        self.calls.append(("crawl", manual))
        return TaskOutcome(name="crawl", ok=True, message="Crawl finished: 2 new articles.")

    async def send(self, *, manual: bool = False) -> TaskOutcome:
        self.calls.append(("send", manual))
        return TaskOutcome(name="send", ok=False, skipped=True, message="Skipped: another task is running.")


@dataclass
class _StatusUpdatesSpy:
    result: StatusUpdateResult = field(default_factory=lambda: StatusUpdateResult(found=True))
    updates: list[StatusUpdate] = field(default_factory=list)

    async def apply(self, update: StatusUpdate) -> StatusUpdateResult:
        self.updates.append(update)
        return self.result


@dataclass
class _Message:
    user_id: int = 10
    chat_id: int = -1001
    topic_id: int | None = 7

    @property
    def from_user(self):
        return SimpleNamespace(id=self.user_id)

    @property
    def chat(self):
        return SimpleNamespace(id=self.chat_id)

    @property
    def message_thread_id(self):
        return self.topic_id


def _handlers(
    *,
    publisher: _PublisherSpy,
    tasks: _TasksSpy | None = None,
    status_updates: _StatusUpdatesSpy | None = None,
):
    context = CommandsContext(
        settings=SimpleNamespace(admin_user_id=10),  # type: ignore[arg-type]
        publisher=publisher,
        tasks=tasks or _TasksSpy(),  # type: ignore[arg-type]
        status_updates=status_updates or _StatusUpdatesSpy(),  # type: ignore[arg-type]
    )
    router = create_commands_router(context)
    return router, {handler.callback.__name__: handler.callback for handler in router.message.handlers}


def test_parse_rate_args() -> None:
    assert parse_rate_args("https://a.example/1 5 must read") == ("https://a.example/1", 5, "must read")
    assert parse_rate_args("https://a.example/1 0") == ("https://a.example/1", 0, None)
    with pytest.raises(ValueError):
        parse_rate_args("https://a.example/1")
    with pytest.raises(ValueError):
        parse_rate_args("https://a.example/1 six")
    with pytest.raises(ValueError):
        parse_rate_args("https://a.example/1 7")


@pytest.mark.asyncio
async def test_crawl_runs_manual_task_and_replies_summary() -> None:
    publisher = _PublisherSpy()
    tasks = _TasksSpy()
    _, handlers = _handlers(publisher=publisher, tasks=tasks)

    await handlers["crawl"](_Message())

    assert tasks.calls == [("crawl", True)]
    assert [item["text"] for item in publisher.sent] == [
        "Crawl started.",
        "Crawl finished: 2 new articles.",
    ]
    assert publisher.sent[0]["topic_id"] == 7


@pytest.mark.asyncio
async def test_send_reports_skip() -> None:
    publisher = _PublisherSpy()
    _, handlers = _handlers(publisher=publisher)

    await handlers["send"](_Message())

    assert publisher.sent[-1]["text"] == "Skipped: another task is running."


@pytest.mark.asyncio
async def test_non_admin_is_ignored() -> None:
    publisher = _PublisherSpy()
    tasks = _TasksSpy()
    _, handlers = _handlers(publisher=publisher, tasks=tasks)

    await handlers["crawl"](_Message(user_id=99))

    assert tasks.calls == []
    assert publisher.sent == []


@pytest.mark.asyncio
async def test_rate_applies_update_and_reports_alert() -> None:
    publisher = _PublisherSpy()
    updates = _StatusUpdatesSpy(result=StatusUpdateResult(found=True, alerted=True))
    _, handlers = _handlers(publisher=publisher, status_updates=updates)

    await handlers["rate"](_Message(), SimpleNamespace(args="https://a.example/1 5 great"))

    assert updates.updates == [StatusUpdate(url="https://a.example/1", rating=5, comment="great")]
    assert publisher.sent[-1]["text"] == "Updated. Alert sent."


@pytest.mark.asyncio
async def test_rate_rejects_invalid_url() -> None:
    publisher = _PublisherSpy()
    updates = _StatusUpdatesSpy()
    _, handlers = _handlers(publisher=publisher, status_updates=updates)

    await handlers["rate"](_Message(), SimpleNamespace(args="not-a-url 3"))

    assert updates.updates == []
    assert publisher.sent[-1]["text"] == "Invalid URL."


@pytest.mark.asyncio
async def test_comment_and_read_report_missing_article() -> None:
    publisher = _PublisherSpy()
    updates = _StatusUpdatesSpy(result=StatusUpdateResult(found=False))
    _, handlers = _handlers(publisher=publisher, status_updates=updates)

    await handlers["comment"](_Message(), SimpleNamespace(args="https://a.example/1 nice read"))
    await handlers["read"](_Message(), SimpleNamespace(args="https://a.example/1"))

    assert updates.updates == [
        StatusUpdate(url="https://a.example/1", comment="nice read"),
        StatusUpdate(url="https://a.example/1", read=True),
    ]
    assert [item["text"] for item in publisher.sent] == ["Article not found.", "Article not found."]


@pytest.mark.asyncio
async def test_read_requires_url() -> None:
    publisher = _PublisherSpy()
    _, handlers = _handlers(publisher=publisher)

    await handlers["read"](_Message(), SimpleNamespace(args=None))

    assert publisher.sent[-1]["text"] == "Usage: /read <url>"


@pytest.mark.asyncio
async def test_commands_help_lists_all_router_commands() -> None:
    publisher = _PublisherSpy()
    router, handlers = _handlers(publisher=publisher)

    await handlers["commands_help"](_Message())

    text = publisher.sent[0]["text"]
    for handler_obj in router.message.handlers:
        for filter_obj in handler_obj.filters:
            names = getattr(getattr(filter_obj, "callback", None), "commands", None) or ()
            for name in names:
                assert f"/{str(name).lstrip('/')}" in text
