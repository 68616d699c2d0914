"""Ports."""

from news_agent.ports.senders import AlertSenderPort, ChatPublisherPort, DigestSenderPort

__all__ = [
    "AlertSenderPort",
    "ChatPublisherPort",
    "DigestSenderPort",
]
