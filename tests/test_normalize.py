from __future__ import annotations

from datetime import datetime, timezone

import pytest

from errors import MalformedResponse
from sources.normalize import domain_from_url, normalize_batch, normalize_item


def test_normalize_item_maps_wire_keys() -> None:
    item = normalize_item(
        {
            "title": "  OpenAI ships a model ",
            "url": "https://openai.com/index/new-model",
            "sourceDomain": "openai.com",
            "rawContent": "Details about the release.",
            "publishedAt": "2026-03-01T09:30:00Z",
        }
    )

    assert item.title == "OpenAI ships a model"
    assert item.source_domain == "openai.com"
    assert item.raw_content == "Details about the release."
    assert item.published_at == datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def test_normalize_item_derives_domain_from_url() -> None:
    item = normalize_item({"title": "T", "url": "https://www.theverge.com/ai/123"})

    assert item.source_domain == "theverge.com"


def test_normalize_item_omits_blank_optional_fields() -> None:
    item = normalize_item(
        {
            "title": "T",
            "url": "https://example.com/a",
            "imageUrl": "",
            "authorHandle": None,
            "publishedAt": "unknown",
        }
    )

    record = item.to_record()
    assert "image_url" not in record
    assert "author_handle" not in record
    assert "published_at" not in record


def test_normalize_item_keeps_image_url_when_present() -> None:
    item = normalize_item(
        {"title": "T", "url": "https://x.com/a/status/1", "imageUrl": "https://pbs.twimg.com/media/a.jpg"}
    )

    assert item.to_record()["image_url"] == "https://pbs.twimg.com/media/a.jpg"


@pytest.mark.parametrize(
    "raw",
    [
        {"title": "No url"},
        {"url": "https://example.com/no-title"},
        {"title": "   ", "url": "https://example.com"},
        "not an object",
    ],
)
def test_normalize_item_rejects_incomplete_entries(raw) -> None:
    with pytest.raises(MalformedResponse):
        normalize_item(raw)


def test_normalize_batch_skips_bad_entries_and_keeps_order() -> None:
    raws = [
        {"title": "A", "url": "https://a.com"},
        {"title": "missing url"},
        42,
        {"title": "B", "url": "https://b.com"},
    ]

    items = normalize_batch(raws, source="search")

    assert [i.title for i in items] == ["A", "B"]


def test_domain_from_url_handles_missing_host() -> None:
    assert domain_from_url("not a url") is None
    assert domain_from_url("https://www.example.com/x") == "example.com"
    assert domain_from_url("https://blog.example.com") == "blog.example.com"


def test_normalize_item_optional_title_is_kept_verbatim() -> None:
    empty = normalize_item({"title": "", "url": "https://example.com/a"}, require_title=False)
    padded = normalize_item({"title": "  padded ", "url": "https://example.com/b"}, require_title=False)

    assert empty.title == ""
    assert padded.title == "  padded "


def test_normalize_item_optional_title_still_needs_url() -> None:
    with pytest.raises(MalformedResponse):
        normalize_item({"title": ""}, require_title=False)


def test_normalize_batch_passes_require_title() -> None:
    raws = [{"title": "", "url": "https://a.com"}, {"title": "B", "url": "https://b.com"}]

    assert len(normalize_batch(raws, source="search")) == 1
    assert len(normalize_batch(raws, source="timeline", require_title=False)) == 2
