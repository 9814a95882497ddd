from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import pytest

from database import Database, decode_bullets
from models.category import Category
from models.run import RunOutcome
from models.story import ScoredItem
from tests.conftest import make_item


def _scored(url: str, score: float = 5, category: Category = Category.OTHER, **extra) -> ScoredItem:
    return ScoredItem.from_candidate(
        make_item(url, raw_content="content", **extra),
        score=score,
        summary_bullets=["first point", "second point"],
        category=category,
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "signal.db")
    yield database
    database.close()


def test_insert_skips_existing_urls(db) -> None:
    assert db.insert_scored_items([_scored("https://a.com"), _scored("https://b.com")]) == 2
    assert db.insert_scored_items([_scored("https://b.com"), _scored("https://c.com")]) == 1
    assert db.list_existing_urls() == {"https://a.com", "https://b.com", "https://c.com"}


def test_insert_empty_batch(db) -> None:
    assert db.insert_scored_items([]) == 0


def test_story_round_trips_bullets_and_optionals(db) -> None:
    published = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    db.insert_scored_items(
        [_scored("https://x.com/a/status/1", score=8.5, author_handle="a", published_at=published)]
    )

    story = db.get_story("https://x.com/a/status/1")

    assert story["bullets"] == ["first point", "second point"]
    assert story["score"] == 8.5
    assert story["author_handle"] == "a"
    assert story["published_at"] == published
    assert "image_url" not in story


def test_top_stories_filters_window_and_category(db) -> None:
    now = datetime.now(timezone.utc)
    db.insert_scored_items(
        [
            _scored("https://recent.com", score=6, category=Category.RESEARCH, published_at=now),
            _scored("https://undated.com", score=9, category=Category.RESEARCH),
            _scored("https://old.com", score=10, category=Category.RESEARCH, published_at=now - timedelta(days=10)),
            _scored("https://policy.com", score=7, category=Category.AI_POLICY, published_at=now),
        ]
    )

    research = db.top_stories(days=3, category="Research")
    assert [s["url"] for s in research] == ["https://undated.com", "https://recent.com"]

    top_two = db.top_stories(days=3, limit=2)
    assert [s["url"] for s in top_two] == ["https://undated.com", "https://policy.com"]


def test_legacy_plain_text_summary_is_one_bullet(db) -> None:
    db.conn.execute(
        "INSERT INTO stories (url, title, summary, score, category, fetched_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("https://legacy.com", "Legacy", "An old free-text summary", 5, "Other", int(time.time())),
    )
    db.conn.commit()

    assert db.get_story("https://legacy.com")["bullets"] == ["An old free-text summary"]


@pytest.mark.parametrize(
    ("stored", "expected"),
    [
        ('["a", "b"]', ["a", "b"]),
        ("plain text", ["plain text"]),
        ('{"not": "a list"}', ['{"not": "a list"}']),
        ('["a", 3, null]', ["a"]),
        (None, []),
        ("", []),
    ],
)
def test_decode_bullets(stored, expected) -> None:
    assert decode_bullets(stored) == expected


def test_run_logs_newest_first(db) -> None:
    assert db.latest_run_log() is None

    db.append_run_log(RunOutcome.success(3))
    db.append_run_log(RunOutcome.error("All 2 search queries failed: q: boom"))

    logs = db.recent_run_logs()
    assert [entry["status"] for entry in logs] == ["error", "success"]
    assert logs[0]["error"] == "All 2 search queries failed: q: boom"
    assert logs[0]["stories_found"] == 0
    assert logs[1]["stories_found"] == 3
    assert logs[1]["error"] is None
    assert db.latest_run_log()["status"] == "error"


def test_stats(db) -> None:
    db.insert_scored_items([_scored("https://a.com")])
    db.append_run_log(RunOutcome.success(1))

    stats = db.stats()

    assert stats["total"] == 1
    assert stats["runs"] == 1
    assert stats["last_run"]["stories_found"] == 1
