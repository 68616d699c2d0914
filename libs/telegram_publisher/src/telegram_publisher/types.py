"""Types for Telegram publisher."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TextMessage:
    text: str
    parse_mode: str | None = None
    disable_web_page_preview: bool = True


@dataclass(slots=True)
class SendResult:
    chat_id: int
    message_id: int
