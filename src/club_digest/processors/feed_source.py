"""
RSS/Atom news sources.

Each configured source (``sources.<key>.url``) is downloaded through
``RetryableHTTPClient`` so the scrape timeout and retries apply, parsed with
feedparser, and turned into
``Article`` records whose bodies have had markup removed.
"""

import datetime
import logging
import time
from typing import Any, Dict, Iterator, List, Optional

import feedparser
import requests

from ..core.http_client import RetryableHTTPClient
from ..core.models import Article
from ..core.text_utils import clean_html_tags

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_HOURS = 48


def _entry_datetime(entry: Dict[str, Any]) -> Optional[datetime.datetime]:
    parsed = entry.get('published_parsed') or entry.get('updated_parsed')
    if isinstance(parsed, time.struct_time):
        return datetime.datetime(*parsed[:6], tzinfo=datetime.timezone.utc)
    return None


def _entry_body(entry: Dict[str, Any]) -> str:
    """Prefer full content over the summary teaser."""
    for content in entry.get('content') or []:
        value = content.get('value') if isinstance(content, dict) else None
        if value and value.strip():
            return clean_html_tags(value)
    return clean_html_tags(entry.get('summary') or entry.get('description') or '')


def _entry_image(entry: Dict[str, Any]) -> str:
    for key in ('media_content', 'media_thumbnail'):
        for media in entry.get(key) or []:
            url = media.get('url') if isinstance(media, dict) else None
            if url:
                return url
    return ''


class FeedSource:
    """One configured news feed."""

    def __init__(
        self,
        key: str,
        url: str,
        *,
        name: Optional[str] = None,
        timeout: float = 20.0,
        max_age_hours: Optional[float] = DEFAULT_MAX_AGE_HOURS,
        retries: int = 3,
        session: Optional[requests.Session] = None,
        http: Optional[RetryableHTTPClient] = None,
    ):
        self.key = key
        self.url = url
        self.name = name or key
        self.timeout = timeout
        self.max_age_hours = max_age_hours
        self.http = http or RetryableHTTPClient(retries, timeout, session=session)

    @classmethod
    def from_config(cls, key: str, source_cfg: Dict[str, Any], scrape_cfg: Optional[Dict[str, Any]] = None) -> "FeedSource":
        scrape_cfg = scrape_cfg or {}
        return cls(
            key,
            source_cfg['url'],
            name=source_cfg.get('name'),
            timeout=float(scrape_cfg.get('timeout') or 20),
            max_age_hours=scrape_cfg.get('max_age_hours', DEFAULT_MAX_AGE_HOURS),
            retries=int(scrape_cfg.get('retries') or 3),
        )

    def _download(self) -> bytes:
        return self.http.get(self.url, timeout=self.timeout).content

    def iter_articles(self, now: Optional[datetime.datetime] = None) -> Iterator[Article]:
        """Yield the feed's recent entries as articles.

        Entries without a link or title are skipped, as are entries older than
        ``max_age_hours`` when the feed provides a publication date.
        """
        feed = feedparser.parse(self._download())
        if feed.bozo:
            logger.warning(f"Feed '{self.name}' has parsing issues: {feed.bozo_exception}")
        logger.debug(f"Feed '{self.name}' returned {len(feed.entries)} raw entries")

        now = now or datetime.datetime.now(datetime.timezone.utc)
        cutoff = now - datetime.timedelta(hours=float(self.max_age_hours)) if self.max_age_hours else None

        for entry in feed.entries:
            link = (entry.get('link') or '').strip()
            title = clean_html_tags(entry.get('title') or '')
            if not link or not title:
                continue
            published = _entry_datetime(entry)
            if cutoff is not None and published is not None and published < cutoff:
                continue
            yield Article(
                title=title,
                body=_entry_body(entry),
                url=link.split('#', 1)[0],
                source=self.name,
                author=(entry.get('author') or '').strip(),
                published=published,
                image=_entry_image(entry),
            )

    def fetch(self, now: Optional[datetime.datetime] = None) -> List[Article]:
        return list(self.iter_articles(now))


def sources_from_config(config: Dict[str, Any]) -> List[FeedSource]:
    """Build a FeedSource for every enabled entry under ``sources``."""
    scrape_cfg = config.get('scrape') or {}
    sources = []
    for key, source_cfg in (config.get('sources') or {}).items():
        if not source_cfg.get('enabled', True):
            continue
        sources.append(FeedSource.from_config(key, source_cfg, scrape_cfg))
    return sources


__all__ = ["FeedSource", "sources_from_config"]
