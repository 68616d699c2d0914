from news_agent.adapters.mail import SmtpDigestSender
from news_agent.adapters.slack import SlackWebhookAlertSender
from news_agent.adapters.telegram import PublisherAdapter, TelegramAlertSender

__all__ = [
    "PublisherAdapter",
    "SlackWebhookAlertSender",
    "SmtpDigestSender",
    "TelegramAlertSender",
]
