"""Telegram API wrapper for plain text notifications."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from aiogram import Bot
from aiogram.exceptions import (
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramNotFound,
    TelegramRetryAfter,
)

from telegram_publisher.exceptions import (
    PublisherChatNotFound,
    PublisherError,
    PublisherForbidden,
)
from telegram_publisher.types import SendResult, TextMessage

log = logging.getLogger(__name__)

TELEGRAM_TEXT_LIMIT = 4096


class TelegramPublisher:
    def __init__(
        self,
        bot: Bot,
        *,
        max_retry_after_attempts: int = 3,
        max_retry_after_delay_seconds: int = 60,
    ) -> None:
        self._bot = bot
        self._max_retry_after_attempts = max(1, max_retry_after_attempts)
        self._max_retry_after_delay_seconds = max(1, max_retry_after_delay_seconds)

    async def send_text(
        self,
        *,
        chat_id: int,
        topic_id: int | None,
        message: TextMessage,
    ) -> SendResult:
        try:
            sent = await self._call_with_retry(
                "send_message",
                self._bot.send_message,
                chat_id=chat_id,
                message_thread_id=topic_id,
                text=truncate_text(message.text),
                parse_mode=message.parse_mode,
                disable_web_page_preview=message.disable_web_page_preview,
            )
        except TelegramForbiddenError as exc:
            raise PublisherForbidden(str(exc)) from exc
        except TelegramNotFound as exc:
            raise PublisherChatNotFound(str(exc)) from exc
        except TelegramBadRequest as exc:
            if "chat not found" in str(exc).lower():
                raise PublisherChatNotFound(str(exc)) from exc
            raise PublisherError(str(exc)) from exc
        return SendResult(chat_id=sent.chat.id, message_id=sent.message_id)

    async def _call_with_retry(
        self,
        method_name: str,
        func: Callable[..., Awaitable],
        **kwargs,
    ):
        last_error: Exception | None = None
        for attempt in range(1, self._max_retry_after_attempts + 1):
            try:
                return await func(**kwargs)
            except TelegramRetryAfter as exc:
                last_error = exc
                retry_after = float(getattr(exc, "retry_after", 1))
                wait_seconds = min(
                    max(retry_after, 1.0), float(self._max_retry_after_delay_seconds)
                )
                log.warning(
                    "publisher.retry_after method=%s attempt=%s wait_seconds=%.2f",
                    method_name,
                    attempt,
                    wait_seconds,
                )
                if attempt >= self._max_retry_after_attempts:
                    break
                await asyncio.sleep(wait_seconds)
        if last_error:
            raise last_error
        raise RuntimeError("publisher retry loop failed unexpectedly")


def truncate_text(text: str, limit: int = TELEGRAM_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"
