"""Outbound sender ports."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from news_agent.services.digest import Digest
    from news_agent.services.notifications import RatingAlert


class DigestSenderPort(Protocol):
    async def send_digest(
        self,
        *,
        recipients: Sequence[str],
        subject: str,
        digest: Digest,
    ) -> None: ...


class AlertSenderPort(Protocol):
    async def send_alert(self, alert: RatingAlert) -> None: ...


class ChatPublisherPort(Protocol):
    async def send_text(
        self,
        *,
        chat_id: int,
        topic_id: int | None,
        text: str,
    ) -> None: ...
