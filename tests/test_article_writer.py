"""Tests for concurrent article collection with a single writer."""

from __future__ import annotations

from pathlib import Path
import sys
import threading
import time

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from club_digest.core.database import DatabaseManager  # noqa: E402
from club_digest.core.errors import RunTimeout  # noqa: E402
from club_digest.core.models import Article  # noqa: E402
from club_digest.processors.article_writer import collect_articles  # noqa: E402


class StaticSource:
    def __init__(self, name, urls):
        self.name = name
        self.urls = urls

    def iter_articles(self):
        for url in self.urls:
            yield Article(title=f"{self.name} {url}", body="body", url=url, source=self.name)


class FailingSource:
    name = "broken"

    def iter_articles(self):
        raise ConnectionError("feed down")


class SlowSource:
    name = "slow"

    def __init__(self, release):
        self.release = release

    def iter_articles(self):
        self.release.wait(5)
        yield Article(title="late", body="b", url="https://late.example.com")


@pytest.fixture
def db(tmp_path):
    return DatabaseManager({'database': {'path': str(tmp_path / "digest.sqlite3")}})


def test_articles_from_all_sources_are_written_once(db):
    sources = [
        StaticSource("a", [f"https://a.example.com/{i}" for i in range(30)]),
        StaticSource("b", ["https://b.example.com/1", "https://a.example.com/0"]),
    ]
    fetch_id = db.create_fetch()

    written = collect_articles(sources, db, fetch_id, max_workers=2, queue_size=3)

    assert written == 31
    urls = [a.url for a in db.load_articles_for_fetch(fetch_id)]
    assert len(urls) == len(set(urls)) == 31


def test_known_urls_are_skipped(db):
    fetch_id = db.create_fetch()
    source = StaticSource("a", ["https://a.example.com/old", "https://a.example.com/new"])

    written = collect_articles([source], db, fetch_id, known_urls={"https://a.example.com/old"})

    assert written == 1
    assert db.load_existing_urls() == {"https://a.example.com/new"}


def test_failing_source_does_not_stop_others(db):
    fetch_id = db.create_fetch()

    written = collect_articles([FailingSource(), StaticSource("ok", ["https://ok.example.com"])], db, fetch_id)

    assert written == 1


def test_deadline_raises_run_timeout(db):
    fetch_id = db.create_fetch()
    release = threading.Event()
    try:
        with pytest.raises(RunTimeout):
            collect_articles([SlowSource(release)], db, fetch_id, deadline=time.monotonic() + 0.2)
    finally:
        release.set()
