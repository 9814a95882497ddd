"""Database operations for The Signal ingestion pipeline.

This module provides SQLite-based storage for scored stories and the
run log. The pipeline depends only on the StoryStore protocol; Database
is the concrete implementation used by the CLI.

Database Schema:
    stories table:
        - id (INTEGER, PK)
        - url (TEXT, UNIQUE): Story identity
        - title, source_domain, raw_content (TEXT)
        - summary (TEXT): Summary bullets as a JSON array
        - score (REAL): Importance 1-10
        - category (TEXT): Category value
        - published_at (INTEGER, NULL): Publication time (Unix epoch)
        - fetched_at (INTEGER): When the story was stored (Unix epoch)
        - author_handle, image_url (TEXT, NULL): Timeline metadata
        - included_in_digest (INTEGER): 0/1, maintained by the digest job

    fetch_logs table:
        - id (INTEGER, PK)
        - ran_at (INTEGER): Run finish time (Unix epoch)
        - stories_found (INTEGER): Items stored by the run
        - status (TEXT): success / skipped / error
        - error (TEXT, NULL): Failure detail

Features:
    - WAL mode for concurrent read/write access
    - UNIQUE(url) + INSERT OR IGNORE as the duplicate backstop
    - Legacy plain-text summaries decoded as a single bullet
    - Context manager support for auto-cleanup
"""

import json
import logging
import sqlite3
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol

from models.run import RunOutcome
from models.story import ScoredItem

logger = logging.getLogger(__name__)


class StoryStore(Protocol):
    """Storage operations the pipeline depends on."""

    def list_existing_urls(self) -> set[str]:
        """Return every stored story URL."""
        ...

    def insert_scored_items(self, items: list[ScoredItem]) -> int:
        """Insert items, skipping URLs that already exist. Returns the count inserted."""
        ...

    def append_run_log(self, outcome: RunOutcome) -> None:
        """Record the outcome of one run."""
        ...


def encode_bullets(bullets: list[str]) -> str:
    """Encode summary bullets for the summary text column."""
    return json.dumps(list(bullets), ensure_ascii=False)


def decode_bullets(summary: str | None) -> list[str]:
    """Decode the summary column into bullets.

    Current rows hold a JSON array of strings. Rows written before
    bullets were structured hold plain text, which is returned as a
    single bullet.

    Example:
        >>> decode_bullets('["a", "b"]')
        ['a', 'b']
        >>> decode_bullets("Legacy summary")
        ['Legacy summary']
    """
    if not summary:
        return []
    try:
        parsed = json.loads(summary)
    except (json.JSONDecodeError, TypeError):
        return [summary]
    if isinstance(parsed, list):
        return [b for b in parsed if isinstance(b, str)]
    return [summary]


def _to_epoch(value: datetime | None) -> int | None:
    return int(value.timestamp()) if value else None


def _from_epoch(value: int | None) -> datetime | None:
    return datetime.fromtimestamp(value, timezone.utc) if value is not None else None


class Database:
    """SQLite database for scored stories and run logs.

    Example:
        >>> with Database("signal.db") as db:
        ...     existing = db.list_existing_urls()
        ...     inserted = db.insert_scored_items(scored)
        ...     db.append_run_log(RunOutcome.success(inserted))
    """

    SCHEMA = """
    -- One row per stored story, unique by URL
    CREATE TABLE IF NOT EXISTS stories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL UNIQUE,        -- Story identity
        title TEXT NOT NULL,
        source_domain TEXT NOT NULL DEFAULT '',
        raw_content TEXT NOT NULL DEFAULT '',
        summary TEXT,                    -- JSON array of bullets
        score REAL,
        category TEXT,
        published_at INTEGER,            -- Unix epoch, NULL if unknown
        fetched_at INTEGER NOT NULL,     -- Unix epoch
        author_handle TEXT,
        image_url TEXT,
        included_in_digest INTEGER NOT NULL DEFAULT 0
    );

    -- Listing queries filter by time and sort by score
    CREATE INDEX IF NOT EXISTS idx_stories_fetched ON stories(fetched_at);
    CREATE INDEX IF NOT EXISTS idx_stories_published ON stories(published_at);
    CREATE INDEX IF NOT EXISTS idx_stories_score ON stories(score);

    -- Audit trail: one row per ingestion run
    CREATE TABLE IF NOT EXISTS fetch_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ran_at INTEGER NOT NULL,
        stories_found INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL,
        error TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_fetch_logs_ran ON fetch_logs(ran_at);
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Initialize database connection.

        Creates the database file if it doesn't exist and sets up
        the schema.

        Args:
            path: Path to SQLite database file
        """
        self.path = Path(path)
        self.conn = sqlite3.connect(str(self.path))
        self.conn.row_factory = sqlite3.Row

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        logger.debug("Database initialized | path=%s", self.path)

    def list_existing_urls(self) -> set[str]:
        """Return every stored story URL."""
        cursor = self.conn.execute("SELECT url FROM stories")
        return {row["url"] for row in cursor.fetchall()}

    def insert_scored_items(self, items: list[ScoredItem]) -> int:
        """Insert scored items in one transaction.

        Items whose URL already exists are silently skipped, which makes
        this safe against a concurrent run that stored the same story.

        Args:
            items: Scored items to store

        Returns:
            Number of rows actually inserted
        """
        if not items:
            return 0

        now = int(time.time())
        inserted = 0
        with self.conn:
            for item in items:
                cursor = self.conn.execute(
                    """
                    INSERT OR IGNORE INTO stories
                    (url, title, source_domain, raw_content, summary, score, category,
                     published_at, fetched_at, author_handle, image_url)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        item.url,
                        item.title,
                        item.source_domain,
                        item.raw_content,
                        encode_bullets(item.summary_bullets),
                        item.score,
                        item.category.value,
                        _to_epoch(item.published_at),
                        now,
                        item.author_handle,
                        item.image_url,
                    ),
                )
                inserted += cursor.rowcount

        skipped = len(items) - inserted
        if skipped:
            logger.info("Stories already stored, skipped | skipped=%d", skipped)
        logger.debug("Stories saved | inserted=%d", inserted)
        return inserted

    def append_run_log(self, outcome: RunOutcome) -> None:
        """Write one fetch_logs row for a run outcome."""
        self.conn.execute(
            "INSERT INTO fetch_logs (ran_at, stories_found, status, error) VALUES (?, ?, ?, ?)",
            (
                _to_epoch(outcome.ran_at),
                outcome.items_stored,
                outcome.status.value,
                outcome.error_detail,
            ),
        )
        self.conn.commit()
        logger.debug("Run log saved | status=%s stored=%d", outcome.status.value, outcome.items_stored)

    def recent_run_logs(self, limit: int = 10) -> list[dict[str, Any]]:
        """Get the most recent run log rows, newest first."""
        cursor = self.conn.execute(
            """
            SELECT id, ran_at, stories_found, status, error
            FROM fetch_logs
            ORDER BY ran_at DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def latest_run_log(self) -> dict[str, Any] | None:
        """Get the most recent run log row, or None if nothing ran yet."""
        logs = self.recent_run_logs(limit=1)
        return logs[0] if logs else None

    def top_stories(
        self,
        days: int = 3,
        category: str | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Get the highest-scored recent stories.

        A story is recent when its publication time is within the window,
        or, for stories without a publication time, when it was fetched
        within the window.

        Args:
            days: Window size in days
            category: Optional category value filter
            limit: Maximum rows

        Returns:
            Story dicts with 'bullets' decoded from the summary column
        """
        cutoff = int((datetime.now(timezone.utc) - timedelta(days=days)).timestamp())
        query = """
            SELECT * FROM stories
            WHERE (published_at >= ? OR (published_at IS NULL AND fetched_at >= ?))
        """
        params: list[Any] = [cutoff, cutoff]
        if category:
            query += " AND category = ?"
            params.append(category)
        query += " ORDER BY score DESC, fetched_at DESC LIMIT ?"
        params.append(limit)

        cursor = self.conn.execute(query, params)
        return [self._story_row(row) for row in cursor.fetchall()]

    def get_story(self, url: str) -> dict[str, Any] | None:
        """Get a story by its URL.

        Args:
            url: Story URL

        Returns:
            Story dict or None if not found
        """
        cursor = self.conn.execute("SELECT * FROM stories WHERE url = ?", (url,))
        row = cursor.fetchone()
        return self._story_row(row) if row else None

    @staticmethod
    def _story_row(row: sqlite3.Row) -> dict[str, Any]:
        """Convert a stories row, dropping unset optional fields."""
        story = dict(row)
        story["bullets"] = decode_bullets(story.get("summary"))
        story["published_at"] = _from_epoch(story.get("published_at"))
        story["fetched_at"] = _from_epoch(story.get("fetched_at"))
        for key in ("published_at", "author_handle", "image_url"):
            if story.get(key) is None:
                story.pop(key, None)
        return story

    def stats(self) -> dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with total story count, run count and last run
        """
        total = self.conn.execute("SELECT COUNT(*) AS total FROM stories").fetchone()["total"]
        runs = self.conn.execute("SELECT COUNT(*) AS runs FROM fetch_logs").fetchone()["runs"]
        return {
            "total": total or 0,
            "runs": runs or 0,
            "last_run": self.latest_run_log(),
        }

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
