"""Slack-compatible incoming webhook alert sender."""

from __future__ import annotations

import httpx
from httpx import AsyncClient

from news_agent.errors import DeliveryError
from news_agent.services.notifications import RatingAlert
from news_agent.services.rendering import build_slack_payload


class SlackWebhookAlertSender:
    def __init__(self, webhook_url: str, *, http: AsyncClient, timeout_seconds: float = 10.0) -> None:
        self._webhook_url = webhook_url
        self._http = http
        self._timeout_seconds = timeout_seconds

    async def send_alert(self, alert: RatingAlert) -> None:
        try:
            response = await self._http.post(
                self._webhook_url,
                json=build_slack_payload(alert),
                timeout=self._timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise DeliveryError(f"webhook request failed: {exc}") from exc
        if response.status_code >= 400:
            raise DeliveryError(f"webhook returned status {response.status_code}")
