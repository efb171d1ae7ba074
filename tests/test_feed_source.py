"""Tests for RSS feed sources."""

from __future__ import annotations

import datetime
from pathlib import Path
import sys

import pytest
import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from club_digest.core.http_client import RetryableHTTPClient  # noqa: E402
from club_digest.processors.feed_source import FeedSource, sources_from_config  # noqa: E402

FEED_PATH = Path(__file__).parent / "fixtures" / "sample_feed.xml"
NOW = datetime.datetime(2025, 9, 1, 20, 0, tzinfo=datetime.timezone.utc)


class FakeResponse:
    def __init__(self, content, status=200):
        self.content = content
        self.status_code = status
        self.headers = {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, timeout))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def make_source(**kwargs):
    session = FakeSession(FakeResponse(FEED_PATH.read_bytes()))
    return FeedSource("sample", "https://news.example.com/feed", name="Sample", session=session, **kwargs), session


def test_recent_entries_become_clean_articles():
    source, session = make_source(timeout=3)

    articles = source.fetch(NOW)

    assert session.calls == [("https://news.example.com/feed", 3)]
    assert [a.title for a in articles] == ["Salah signs new deal", "Injury update ahead of derby"]
    first, second = articles
    assert first.url == "https://news.example.com/2025/salah-new-deal"
    assert first.body == "Mohamed Salah has signed a new deal today."
    assert first.image == "https://news.example.com/salah.jpg"
    assert first.source == "Sample"
    assert first.published == datetime.datetime(2025, 9, 1, 10, 0, tzinfo=datetime.timezone.utc)
    assert second.body == "Two players doubtful."


def test_age_filter_can_be_disabled():
    source, _ = make_source(max_age_hours=None)

    titles = [a.title for a in source.fetch(NOW)]

    assert "Archive piece" in titles


def test_http_errors_propagate_after_retries():
    session = FakeSession(FakeResponse(b"", status=503))
    http = RetryableHTTPClient(2, session=session, sleep=lambda _: None)
    source = FeedSource("x", "https://bad.example.com", http=http)

    with pytest.raises(requests.HTTPError):
        source.fetch(NOW)
    assert len(session.calls) == 2


def test_transient_server_error_is_retried():
    session = FakeSession(FakeResponse(b"", status=502), FakeResponse(FEED_PATH.read_bytes()))
    http = RetryableHTTPClient(3, session=session, sleep=lambda _: None)
    source = FeedSource("sample", "https://news.example.com/feed", timeout=4, http=http)

    articles = source.fetch(NOW)

    assert len(session.calls) == 2
    assert len(articles) == 2


def test_sources_from_config_skips_disabled():
    config = {
        "scrape": {"timeout": 9, "max_age_hours": 12},
        "sources": {
            "a": {"url": "https://a.example.com/feed", "name": "A"},
            "b": {"url": "https://b.example.com/feed", "enabled": False},
        },
    }

    sources = sources_from_config(config)

    assert [(s.key, s.name, s.timeout, s.max_age_hours) for s in sources] == [("a", "A", 9.0, 12)]
    assert sources[0].http.max_retries == 3
