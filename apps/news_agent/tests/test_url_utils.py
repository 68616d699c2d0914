from __future__ import annotations

from news_agent.utils.url import CACHE_KEY_LENGTH, extract_hostname, url_cache_key


def test_extract_hostname_lowercases() -> None:
    assert extract_hostname("https://News.Example.COM/a?b=1") == "news.example.com"


def test_extract_hostname_rejects_malformed() -> None:
    assert extract_hostname(None) is None
    assert extract_hostname("") is None
    assert extract_hostname("example.com/path") is None
    assert extract_hostname("https://[::1") is None


def test_url_cache_key_is_fixed_length_and_stable() -> None:
    key = url_cache_key("https://example.com/" + "x" * 2000)

    assert len(key) == CACHE_KEY_LENGTH
    assert key == url_cache_key("https://example.com/" + "x" * 2000)
    assert key != url_cache_key("https://example.com/other")
