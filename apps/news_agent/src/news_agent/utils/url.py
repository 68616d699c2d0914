"""URL helpers."""

from __future__ import annotations

import hashlib
from urllib.parse import urlparse


CACHE_KEY_LENGTH = 32


def extract_hostname(raw_url: str | None) -> str | None:
    if not raw_url:
        return None
    try:
        parsed = urlparse(raw_url.strip())
        hostname = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not hostname:
        return None
    return hostname.lower()


def url_cache_key(url: str) -> str:
    """Fixed-length cache key for a URL (md5 hex, 32 chars)."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()
