from telegram_publisher.exceptions import (
    PublisherChatNotFound,
    PublisherError,
    PublisherForbidden,
)
from telegram_publisher.publisher import TelegramPublisher
from telegram_publisher.types import SendResult, TextMessage

__all__ = [
    "__version__",
    "PublisherChatNotFound",
    "PublisherError",
    "PublisherForbidden",
    "SendResult",
    "TelegramPublisher",
    "TextMessage",
]
__version__ = "0.2.0"
