"""Error taxonomy shared by the ingestion and delivery pipeline."""

from __future__ import annotations


class NewsAgentError(Exception):
    pass


class FetchError(NewsAgentError):
    """Feed request failed on every attempt."""

    def __init__(self, message: str, *, url: str, attempts: int) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class ParseError(NewsAgentError):
    """Feed payload could not be parsed."""


class CacheUnavailable(NewsAgentError):
    """Shared cache tier failed to read or write."""


class LockContention(NewsAgentError):
    """Single-flight guard could not be acquired in time."""

    def __init__(self, task_name: str, *, timeout_seconds: float) -> None:
        super().__init__(f"{task_name}: lock not acquired within {timeout_seconds:g}s")
        self.task_name = task_name
        self.timeout_seconds = timeout_seconds


class DeliveryError(NewsAgentError):
    """Mail or chat sender failed to deliver."""
