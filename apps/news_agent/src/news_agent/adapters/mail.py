"""SMTP digest sender."""

from __future__ import annotations

import asyncio
import smtplib
from collections.abc import Sequence
from email.message import EmailMessage
from email.utils import formataddr

from news_agent.config import MailSettings
from news_agent.errors import DeliveryError
from news_agent.services.digest import Digest
from news_agent.services.rendering import render_digest_html, render_digest_text


class SmtpDigestSender:
    def __init__(self, settings: MailSettings) -> None:
        self._settings = settings

    def build_message(self, *, recipients: Sequence[str], subject: str, digest: Digest) -> EmailMessage:
        sender = self._settings.from_address or self._settings.username
        if not sender:
            raise DeliveryError("mail from_address is not configured")
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self._settings.from_name, sender))
        msg["To"] = ", ".join(recipients)
        msg.set_content(render_digest_text(digest))
        msg.add_alternative(render_digest_html(digest), subtype="html")
        return msg

    async def send_digest(
        self,
        *,
        recipients: Sequence[str],
        subject: str,
        digest: Digest,
    ) -> None:
        if not self._settings.host:
            raise DeliveryError("mail host is not configured")
        msg = self.build_message(recipients=recipients, subject=subject, digest=digest)
        try:
            await asyncio.to_thread(self._send, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"smtp send failed: {exc}") from exc

    def _send(self, msg: EmailMessage) -> None:
        cfg = self._settings
        smtp_cls = smtplib.SMTP_SSL if cfg.use_ssl else smtplib.SMTP
        with smtp_cls(cfg.host, cfg.port, timeout=cfg.timeout_seconds) as smtp:
            if not cfg.use_ssl:
                smtp.starttls()
            if cfg.username and cfg.password:
                smtp.login(cfg.username, cfg.password)
            smtp.send_message(msg)
