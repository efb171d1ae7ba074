"""
SQLite store for fetch runs, scraped articles, summaries and bullets.

Tables:
- fetches: one row per pipeline run (generated_at, sent)
- articles: scraped articles per fetch (URL-level dedup across runs)
- summaries: one mood line per fetch, with ``sent`` denormalized from fetches
- bullets: summary points with the novelty filter's decision (NULL/0/1)

Every child table references fetches(id) with ON DELETE CASCADE; foreign key
enforcement is switched on for each connection.
"""

import datetime
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Set

from .errors import PersistenceFailure
from .models import Article, Bullet, Fetch, Summary
from .paths import resolve_data_file

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS fetches (
    id INTEGER PRIMARY KEY,
    generated_at TEXT NOT NULL,
    sent BOOLEAN NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY,
    fetch_id INTEGER NOT NULL,
    url TEXT,
    title TEXT,
    published_time TEXT,
    image TEXT,
    author TEXT,
    text TEXT,
    source TEXT,
    FOREIGN KEY(fetch_id) REFERENCES fetches(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS summaries (
    id INTEGER PRIMARY KEY,
    fetch_id INTEGER NOT NULL UNIQUE,
    generated_at TEXT NOT NULL,
    mood_text TEXT,
    sent BOOLEAN NOT NULL DEFAULT 0,
    FOREIGN KEY(fetch_id) REFERENCES fetches(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS bullets (
    id INTEGER PRIMARY KEY,
    fetch_id INTEGER NOT NULL,
    text TEXT NOT NULL,
    accepted BOOLEAN DEFAULT NULL,
    FOREIGN KEY(fetch_id) REFERENCES fetches(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_fetches_sent_generated ON fetches(sent, generated_at);
CREATE INDEX IF NOT EXISTS idx_bullets_fetch ON bullets(fetch_id);
CREATE INDEX IF NOT EXISTS idx_articles_url ON articles(url);

CREATE VIEW IF NOT EXISTS latest_rejected_bullets AS
SELECT b.id, b.text, f.generated_at
FROM bullets b
JOIN fetches f ON b.fetch_id = f.id
WHERE f.id = (SELECT MAX(id) FROM fetches)
  AND b.accepted = 0;
"""


def _utcnow_iso() -> str:
    """UTC timestamp with microseconds so runs in the same second still order."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='microseconds')


def _to_bool(value: Any) -> Optional[bool]:
    return None if value is None else bool(value)


class DatabaseManager:
    """Persists fetch runs and implements the bullet publication lifecycle."""

    def __init__(self, config: Dict[str, Any]):
        """Resolve the database path from config and ensure the schema exists."""
        self.config = config
        self.db_path = str(resolve_data_file(config['database']['path'], ensure_parent=True))
        self._init_database()

    def _init_database(self):
        """Create tables, then migrate databases written before fetches carried ``sent``."""
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA table_info(fetches)")
            columns = {row[1] for row in cursor.fetchall()}

            if columns and 'generated_at' not in columns:
                cursor.execute("ALTER TABLE fetches ADD COLUMN generated_at TEXT")
                if 'fetched_at' in columns:
                    cursor.execute("UPDATE fetches SET generated_at = fetched_at")
                logger.info("Migrated fetches table: added generated_at")
            if columns and 'sent' not in columns:
                cursor.execute("ALTER TABLE fetches ADD COLUMN sent BOOLEAN NOT NULL DEFAULT 0")
                cursor.execute(
                    "UPDATE fetches SET sent = 1 WHERE id IN (SELECT fetch_id FROM summaries WHERE sent = 1)"
                )
                logger.info("Migrated fetches table: added sent")

            cursor.execute("PRAGMA table_info(articles)")
            article_columns = {row[1] for row in cursor.fetchall()}
            for old, new in (('og_title', 'title'), ('og_image', 'image')):
                if old in article_columns and new not in article_columns:
                    cursor.execute(f"ALTER TABLE articles RENAME COLUMN {old} TO {new}")
                    logger.info("Migrated articles table: %s -> %s", old, new)

            conn.executescript(SCHEMA_SQL)

    @contextmanager
    def get_connection(self, row_factory: bool = True):
        """Context manager for connections with automatic commit/rollback.

        Foreign keys are enabled per connection so deletes cascade.

        Example:
            with db.get_connection() as conn:
                conn.execute("SELECT * FROM fetches")
                # Auto-commits on success, rolls back on error, always closes
        """
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        if row_factory:
            conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # --- fetches -----------------------------------------------------------

    def create_fetch(self, generated_at: Optional[str] = None) -> int:
        """Allocate a new, unsent fetch record and return its id."""
        stamp = generated_at or _utcnow_iso()
        try:
            with self.get_connection(row_factory=False) as conn:
                cursor = conn.execute(
                    "INSERT INTO fetches (generated_at, sent) VALUES (?, 0)", (stamp,)
                )
                fetch_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to create fetch: {e}") from e
        logger.debug("Created fetch %d at %s", fetch_id, stamp)
        return fetch_id

    def get_fetch(self, fetch_id: int) -> Optional[Fetch]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT id, generated_at, sent FROM fetches WHERE id = ?", (fetch_id,)
            ).fetchone()
        if row is None:
            return None
        return Fetch(id=row['id'], generated_at=row['generated_at'], sent=bool(row['sent']))

    def list_fetches(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return fetches newest first with article/bullet counters."""
        query = """
            SELECT f.id, f.generated_at, f.sent, s.mood_text,
                   (SELECT COUNT(*) FROM articles a WHERE a.fetch_id = f.id) AS article_count,
                   (SELECT COUNT(*) FROM bullets b WHERE b.fetch_id = f.id AND b.accepted = 1) AS accepted_count,
                   (SELECT COUNT(*) FROM bullets b WHERE b.fetch_id = f.id AND b.accepted = 0) AS rejected_count
            FROM fetches f
            LEFT JOIN summaries s ON s.fetch_id = f.id
            ORDER BY f.generated_at DESC, f.id DESC
        """
        params: List[Any] = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self.get_connection() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def mark_sent(self, fetch_id: int) -> None:
        """Mark a fetch (and its summary) as published. Safe to call twice."""
        try:
            with self.get_connection(row_factory=False) as conn:
                cursor = conn.execute("UPDATE fetches SET sent = 1 WHERE id = ?", (fetch_id,))
                if cursor.rowcount == 0:
                    raise PersistenceFailure(f"Cannot mark unknown fetch {fetch_id} as sent")
                conn.execute("UPDATE summaries SET sent = 1 WHERE fetch_id = ?", (fetch_id,))
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to mark fetch {fetch_id} as sent: {e}") from e
        logger.info("Marked fetch %d as sent", fetch_id)

    def delete_fetch(self, fetch_id: int) -> bool:
        """Delete a fetch; its articles, summary and bullets cascade."""
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.execute("DELETE FROM fetches WHERE id = ?", (fetch_id,))
            return cursor.rowcount > 0

    def purge_fetches_older_than(self, days: int) -> int:
        """Delete fetches generated more than *days* days ago.

        The latest published fetch is always kept because it is the baseline
        for the next novelty check.
        """
        cutoff = (datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days)).isoformat(
            timespec='microseconds'
        )
        latest = self._latest_published_fetch_id()
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.execute(
                "DELETE FROM fetches WHERE generated_at < ? AND id IS NOT ?",
                (cutoff, latest),
            )
            deleted = cursor.rowcount
        logger.info("Purged %d fetches generated before %s", deleted, cutoff)
        return deleted

    def reset(self) -> None:
        """Remove the database file and recreate an empty schema."""
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
            logger.info("Removed database: %s", self.db_path)
        self._init_database()

    # --- articles ----------------------------------------------------------

    def insert_article(self, fetch_id: int, article: Article) -> None:
        published = article.published.isoformat() if article.published else None
        try:
            with self.get_connection(row_factory=False) as conn:
                conn.execute(
                    """
                    INSERT INTO articles (fetch_id, url, title, published_time, image, author, text, source)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (fetch_id, article.url, article.title, published, article.image,
                     article.author, article.body, article.source),
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to insert article {article.url}: {e}") from e

    def load_articles_for_fetch(self, fetch_id: int) -> List[Article]:
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT url, title, published_time, image, author, text, source
                FROM articles WHERE fetch_id = ? ORDER BY id
                """,
                (fetch_id,),
            ).fetchall()
        articles = []
        for row in rows:
            published = None
            if row['published_time']:
                try:
                    published = datetime.datetime.fromisoformat(row['published_time'])
                except ValueError:
                    logger.debug("Unparseable published_time '%s' for %s", row['published_time'], row['url'])
            articles.append(Article(
                title=row['title'] or '',
                body=row['text'] or '',
                url=row['url'] or '',
                source=row['source'] or '',
                author=row['author'] or '',
                published=published,
                image=row['image'] or '',
            ))
        return articles

    def load_existing_urls(self) -> Set[str]:
        """Return every article URL stored by previous fetches."""
        with self.get_connection(row_factory=False) as conn:
            return {row[0] for row in conn.execute("SELECT url FROM articles WHERE url IS NOT NULL")}

    # --- summaries and bullets ---------------------------------------------

    def insert_summary(self, fetch_id: int, summary: Summary, *, require_decisions: bool = True) -> None:
        """Store the mood and every bullet of *summary* in a single transaction.

        Args:
            fetch_id: Fetch the summary belongs to.
            summary: Summary whose bullets carry the novelty filter's decisions.
            require_decisions: Refuse bullets whose ``accepted`` is still None.

        Raises:
            ValueError: A bullet is undecided while decisions are required.
            PersistenceFailure: The transaction failed; nothing was written.
        """
        if require_decisions:
            pending = [b.text for b in summary.items if b.accepted is None]
            if pending:
                raise ValueError(f"{len(pending)} bullets have no decision; refusing to persist summary")

        try:
            with self.get_connection(row_factory=False) as conn:
                conn.execute(
                    "INSERT INTO summaries (fetch_id, generated_at, mood_text) VALUES (?, ?, ?)",
                    (fetch_id, _utcnow_iso(), summary.mood),
                )
                conn.executemany(
                    "INSERT INTO bullets (fetch_id, text, accepted) VALUES (?, ?, ?)",
                    [(fetch_id, b.text, b.accepted) for b in summary.items],
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to commit summary + bullets for fetch {fetch_id}: {e}") from e
        logger.debug("Stored summary with %d bullets for fetch %d", len(summary.items), fetch_id)

    def _latest_published_fetch_id(self) -> Optional[int]:
        with self.get_connection(row_factory=False) as conn:
            row = conn.execute(
                "SELECT id FROM fetches WHERE sent = 1 ORDER BY generated_at DESC, id DESC LIMIT 1"
            ).fetchone()
        return row[0] if row else None

    def fetch_latest_published_bullets(self) -> List[Bullet]:
        """Accepted bullets of the most recent published fetch (empty if none)."""
        fetch_id = self._latest_published_fetch_id()
        if fetch_id is None:
            return []
        with self.get_connection(row_factory=False) as conn:
            rows = conn.execute(
                "SELECT text, accepted FROM bullets WHERE fetch_id = ? AND accepted = 1 ORDER BY id",
                (fetch_id,),
            ).fetchall()
        return [Bullet(text=text, accepted=_to_bool(accepted)) for text, accepted in rows]

    def fetch_carryover_bullets(self) -> List[Bullet]:
        """Accepted bullets of unsent fetches newer than the latest published fetch.

        Newest fetch first; a text appearing in several fetches is returned once.
        """
        with self.get_connection(row_factory=False) as conn:
            rows = conn.execute(
                """
                SELECT b.text, b.accepted
                FROM bullets b
                JOIN fetches f ON f.id = b.fetch_id
                WHERE f.sent = 0
                  AND b.accepted = 1
                  AND f.generated_at > COALESCE(
                        (SELECT MAX(generated_at) FROM fetches WHERE sent = 1), '')
                ORDER BY f.generated_at DESC, b.id DESC
                """
            ).fetchall()
        seen: Set[str] = set()
        bullets: List[Bullet] = []
        for text, accepted in rows:
            if text in seen:
                continue
            seen.add(text)
            bullets.append(Bullet(text=text, accepted=_to_bool(accepted)))
        return bullets

    def fetch_latest_rejected_bullets(self) -> List[Bullet]:
        """Bullets the novelty filter rejected in the most recent fetch."""
        with self.get_connection(row_factory=False) as conn:
            rows = conn.execute("SELECT text FROM latest_rejected_bullets ORDER BY id").fetchall()
        return [Bullet(text=row[0], accepted=False) for row in rows]

    def load_summary(self, fetch_id: int) -> Optional[Summary]:
        """Rebuild the stored summary of a fetch, bullets in insertion order."""
        with self.get_connection() as conn:
            srow = conn.execute(
                "SELECT mood_text, generated_at FROM summaries WHERE fetch_id = ?", (fetch_id,)
            ).fetchone()
            if srow is None:
                return None
            brows = conn.execute(
                "SELECT text, accepted FROM bullets WHERE fetch_id = ? ORDER BY id", (fetch_id,)
            ).fetchall()
        date = datetime.datetime.fromisoformat(srow['generated_at']).date()
        items = [Bullet(text=r['text'], accepted=_to_bool(r['accepted'])) for r in brows]
        return Summary(mood=srow['mood_text'] or '', items=items, date=date)

    def get_stats(self) -> Dict[str, Any]:
        with self.get_connection() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM fetches) AS fetches,
                    (SELECT COUNT(*) FROM fetches WHERE sent = 1) AS published,
                    (SELECT COUNT(*) FROM articles) AS articles,
                    (SELECT COUNT(*) FROM bullets) AS bullets,
                    (SELECT MAX(generated_at) FROM fetches WHERE sent = 1) AS last_published_at
                """
            ).fetchone()
        return dict(row)

    def close_all_connections(self):
        """Close any open database connections (connections are per call)."""
        pass
