"""Item normalizer: map adapter output onto the canonical CandidateItem.

Both adapters produce plain dicts in the upstream wire vocabulary
(camelCase keys: title, url, sourceDomain, rawContent, publishedAt,
authorHandle, imageUrl). This module is the single place that turns
those dicts into CandidateItem objects, so every item has the same shape
regardless of where it came from.

Rules:
    - url is required; title must be non-blank unless the caller
      opts out (link-only timeline posts keep an empty title)
    - sourceDomain is derived from the URL host when missing
    - optional fields that are missing, None or blank stay unset
      (absent, never an empty string)
    - unparseable publishedAt values are dropped, not fatal

Pure functions, no I/O.
"""

import logging
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from errors import MalformedResponse
from models.story import CandidateItem

logger = logging.getLogger(__name__)

# Wire key -> CandidateItem field
_FIELD_MAP = {
    "title": "title",
    "url": "url",
    "sourceDomain": "source_domain",
    "rawContent": "raw_content",
    "publishedAt": "published_at",
    "authorHandle": "author_handle",
    "imageUrl": "image_url",
}

_OPTIONAL_FIELDS = ("published_at", "author_handle", "image_url")


def domain_from_url(url: str) -> str | None:
    """Return the URL's host without a leading 'www.', or None if it has none.

    Example:
        >>> domain_from_url("https://www.example.com/post")
        'example.com'
    """
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_item(raw: Mapping[str, Any], require_title: bool = True) -> CandidateItem:
    """Build a CandidateItem from an adapter dict.

    Args:
        raw: Dict using the wire keys listed in _FIELD_MAP
        require_title: Reject entries with a blank title. When False the
            title is kept exactly as given (timeline posts may be link-only)

    Returns:
        Canonical CandidateItem

    Raises:
        MalformedResponse: If raw is not a mapping, lacks a url, or lacks a
            title while require_title is set
    """
    if not isinstance(raw, Mapping):
        raise MalformedResponse(f"expected an object, got {type(raw).__name__}")

    fields: dict[str, Any] = {}
    for wire_key, name in _FIELD_MAP.items():
        if wire_key in raw:
            fields[name] = raw[wire_key]

    url = _text(fields.get("url"))
    if not url:
        raise MalformedResponse("item has no url")
    if require_title:
        title = _text(fields.get("title"))
        if not title:
            raise MalformedResponse(f"item has no title | url={url}")
    else:
        title = fields.get("title")
        title = "" if title is None else str(title)

    fields["title"] = title
    fields["url"] = url
    fields["raw_content"] = fields.get("raw_content") or ""
    if not isinstance(fields["raw_content"], str):
        fields["raw_content"] = str(fields["raw_content"])
    fields["source_domain"] = _text(fields.get("source_domain")) or domain_from_url(url) or "unknown"

    for name in _OPTIONAL_FIELDS:
        if name in fields and (fields[name] is None or _text(fields[name]) == ""):
            del fields[name]

    return CandidateItem(**fields)


def normalize_batch(
    raws: Iterable[Any],
    source: str,
    require_title: bool = True,
) -> list[CandidateItem]:
    """Normalize a batch, skipping entries that cannot become items.

    Order is preserved.

    Args:
        raws: Adapter dicts
        source: Label for log messages
        require_title: Passed through to normalize_item

    Returns:
        Successfully normalized items
    """
    items = []
    skipped = 0
    for raw in raws:
        try:
            items.append(normalize_item(raw, require_title=require_title))
        except (MalformedResponse, ValueError) as e:
            skipped += 1
            logger.debug("Skipped malformed item | source=%s error=%s", source, e)
    if skipped:
        logger.debug("Normalized batch | source=%s items=%d skipped=%d", source, len(items), skipped)
    return items
