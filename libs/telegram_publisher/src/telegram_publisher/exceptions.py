"""Publisher exceptions."""

from __future__ import annotations


class PublisherError(Exception):
    pass


class PublisherChatNotFound(PublisherError):
    pass


class PublisherForbidden(PublisherError):
    pass
