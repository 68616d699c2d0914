"""Admin commands for manual crawl, send and article status updates."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from news_agent.config import Settings
from news_agent.logging import get_logger
from news_agent.ports.senders import ChatPublisherPort
from news_agent.services.notifications import MAX_RATING, StatusUpdateService
from news_agent.services.pipeline_types import StatusUpdate
from news_agent.services.tasks import NewsAgentTasks

log = get_logger(__name__)

COMMANDS_HELP = [
    ("/crawl", "Fetch all configured feeds now."),
    ("/send", "Deliver the digest of unsent articles now."),
    ("/rate <url> <0-5> [comment]", "Rate an article; high ratings trigger an alert."),
    ("/comment <url> <text>", "Attach a comment to an article."),
    ("/read <url>", "Mark an article as read."),
    ("/commands", "Show this list."),
]


@dataclass(slots=True)
class CommandsContext:
    settings: Settings
    publisher: ChatPublisherPort
    tasks: NewsAgentTasks
    status_updates: StatusUpdateService


def parse_rate_args(raw_args: str | None) -> tuple[str, int, str | None]:
    parts = (raw_args or "").strip().split(maxsplit=2)
    if len(parts) < 2:
        raise ValueError("Usage: /rate <url> <0-5> [comment]")
    url, raw_rating = parts[0], parts[1]
    try:
        rating = int(raw_rating)
    except ValueError as exc:
        raise ValueError(f"Rating must be a number from 0 to {MAX_RATING}.") from exc
    if not 0 <= rating <= MAX_RATING:
        raise ValueError(f"Rating must be a number from 0 to {MAX_RATING}.")
    comment = parts[2].strip() if len(parts) > 2 else None
    return url, rating, comment or None


def parse_comment_args(raw_args: str | None) -> tuple[str, str]:
    parts = (raw_args or "").strip().split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip():
        raise ValueError("Usage: /comment <url> <text>")
    return parts[0], parts[1].strip()


def valid_article_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def render_commands_help() -> str:
    lines = ["Commands:"]
    for syntax, description in COMMANDS_HELP:
        lines.append(f"{syntax} - {description}")
    return "\n".join(lines)


def create_commands_router(context: CommandsContext) -> Router:
    router = Router()

    def is_admin(message: Message) -> bool:
        return bool(message.from_user and message.from_user.id == context.settings.admin_user_id)

    async def reply(message: Message, text: str) -> None:
        await context.publisher.send_text(
            chat_id=message.chat.id,
            topic_id=message.message_thread_id,
            text=text,
        )

    async def apply_update(message: Message, update: StatusUpdate) -> None:
        if not valid_article_url(update.url):
            await reply(message, "Invalid URL.")
            return
        try:
            result = await context.status_updates.apply(update)
        except ValueError as exc:
            await reply(message, str(exc))
            return
        if not result.found:
            await reply(message, "Article not found.")
            return
        text = "Updated."
        if result.alerted:
            text += " Alert sent."
        await reply(message, text)

    @router.message(Command("crawl"))
    async def crawl(message: Message) -> None:
        if not is_admin(message):
            return
        await reply(message, "Crawl started.")
        outcome = await context.tasks.crawl(manual=True)
        await reply(message, outcome.message)

    @router.message(Command("send"))
    async def send(message: Message) -> None:
        if not is_admin(message):
            return
        outcome = await context.tasks.send(manual=True)
        await reply(message, outcome.message)

    @router.message(Command("rate"))
    async def rate(message: Message, command: CommandObject) -> None:
        if not is_admin(message):
            return
        try:
            url, rating, comment = parse_rate_args(command.args)
        except ValueError as exc:
            await reply(message, str(exc))
            return
        await apply_update(message, StatusUpdate(url=url, rating=rating, comment=comment))

    @router.message(Command("comment"))
    async def comment(message: Message, command: CommandObject) -> None:
        if not is_admin(message):
            return
        try:
            url, text = parse_comment_args(command.args)
        except ValueError as exc:
            await reply(message, str(exc))
            return
        await apply_update(message, StatusUpdate(url=url, comment=text))

    @router.message(Command("read"))
    async def read(message: Message, command: CommandObject) -> None:
        if not is_admin(message):
            return
        url = (command.args or "").strip()
        if not url:
            await reply(message, "Usage: /read <url>")
            return
        await apply_update(message, StatusUpdate(url=url, read=True))

    @router.message(Command("commands"))
    async def commands_help(message: Message) -> None:
        if not is_admin(message):
            return
        await reply(message, render_commands_help())

    log.debug("commands_router.created")
    return router
