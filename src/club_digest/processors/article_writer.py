"""
Concurrent article collection with a single database writer.

One producer per source runs on a thread pool and pushes new articles into a
bounded queue. ``ArticleWriter`` is the only thread that writes articles to
the store; it stops when it receives the end-of-stream sentinel, which is
queued after every producer has finished (or the deadline has passed).
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from typing import List, Optional, Sequence, Set

from ..core.database import DatabaseManager
from ..core.errors import PersistenceFailure, RunTimeout
from ..core.models import Article

logger = logging.getLogger(__name__)

_END = object()
_PUT_POLL_SECONDS = 0.5


class ArticleWriter(threading.Thread):
    """Drain the article queue into the store for one fetch."""

    def __init__(self, db: DatabaseManager, fetch_id: int, articles: "queue.Queue"):
        super().__init__(name=f"article-writer-{fetch_id}", daemon=True)
        self.db = db
        self.fetch_id = fetch_id
        self.articles = articles
        self.written = 0
        self.failed = 0
        self._seen_urls: Set[str] = set()

    def run(self) -> None:
        while True:
            item = self.articles.get()
            try:
                if item is _END:
                    break
                if item.url and item.url in self._seen_urls:
                    continue
                self._seen_urls.add(item.url)
                try:
                    self.db.insert_article(self.fetch_id, item)
                    self.written += 1
                    logger.debug("Inserted article: %s", item.url)
                except PersistenceFailure as exc:
                    self.failed += 1
                    logger.error("DB insert failed: %s", exc)
            finally:
                self.articles.task_done()
        logger.info("All articles inserted for fetch_id %d (%d written)", self.fetch_id, self.written)


def _produce(source, articles: "queue.Queue", known_urls: Set[str], stop: threading.Event) -> int:
    """Push the source's unseen articles into the queue; return how many."""
    pushed = 0
    for article in source.iter_articles():
        if article.url in known_urls:
            continue
        while not stop.is_set():
            try:
                articles.put(article, timeout=_PUT_POLL_SECONDS)
                pushed += 1
                break
            except queue.Full:
                continue
        if stop.is_set():
            break
    logger.info(f"Found {pushed} new articles in source '{getattr(source, 'name', source)}'")
    return pushed


def collect_articles(
    sources: Sequence,
    db: DatabaseManager,
    fetch_id: int,
    *,
    known_urls: Optional[Set[str]] = None,
    max_workers: int = 8,
    queue_size: int = 200,
    deadline: Optional[float] = None,
) -> int:
    """Scrape every source concurrently and store new articles under *fetch_id*.

    Args:
        sources: Objects exposing ``iter_articles()`` and ``name``.
        db: Store used by the single writer thread.
        fetch_id: Fetch the articles belong to.
        known_urls: URLs stored by previous fetches; these are skipped.
        max_workers: Producer pool size.
        queue_size: Bound of the producer/writer queue.
        deadline: ``time.monotonic()`` value after which collection aborts.

    Returns:
        Number of articles written.

    Raises:
        RunTimeout: The deadline passed before every producer finished.
    """
    known = set(known_urls or ())
    articles: "queue.Queue" = queue.Queue(maxsize=max(1, int(queue_size)))
    stop = threading.Event()
    writer = ArticleWriter(db, fetch_id, articles)
    writer.start()

    timed_out = False
    executor = ThreadPoolExecutor(max_workers=max(1, min(int(max_workers), len(sources) or 1)))
    try:
        futures = {executor.submit(_produce, src, articles, known, stop): src for src in sources}
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            for future in as_completed(futures, timeout=remaining):
                src = futures[future]
                try:
                    future.result()
                except Exception as exc:
                    logger.error(f"Error processing source '{getattr(src, 'name', src)}': {exc}")
        except FuturesTimeout:
            timed_out = True
            stop.set()
            for future in futures:
                future.cancel()
    finally:
        executor.shutdown(wait=not timed_out)
        articles.put(_END)
        writer.join()

    if timed_out:
        raise RunTimeout(f"Article collection did not finish before the run deadline ({writer.written} stored)")
    return writer.written


__all__ = ["ArticleWriter", "collect_articles"]
