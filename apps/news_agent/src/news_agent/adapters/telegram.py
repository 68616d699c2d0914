"""Telegram adapters bridging app ports to telegram-publisher."""

from __future__ import annotations

from aiogram.exceptions import TelegramAPIError

from telegram_publisher import PublisherError, TelegramPublisher, TextMessage
from news_agent.errors import DeliveryError
from news_agent.ports.senders import ChatPublisherPort
from news_agent.services.notifications import RatingAlert
from news_agent.services.rendering import render_alert_text


class PublisherAdapter:
    def __init__(self, publisher: TelegramPublisher) -> None:
        self._publisher = publisher

    async def send_text(
        self,
        *,
        chat_id: int,
        topic_id: int | None,
        text: str,
    ) -> None:
        try:
            await self._publisher.send_text(
                chat_id=chat_id,
                topic_id=topic_id,
                message=TextMessage(text=text),
            )
        except (PublisherError, TelegramAPIError) as exc:
            raise DeliveryError(f"telegram send failed: {exc}") from exc


class TelegramAlertSender:
    def __init__(self, publisher: ChatPublisherPort, *, chat_id: int, topic_id: int | None = None) -> None:
        self._publisher = publisher
        self._chat_id = chat_id
        self._topic_id = topic_id

    async def send_alert(self, alert: RatingAlert) -> None:
        await self._publisher.send_text(
            chat_id=self._chat_id,
            topic_id=self._topic_id,
            text=render_alert_text(alert),
        )
