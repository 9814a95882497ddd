"""Item models for the ingestion pipeline.

This module defines the two item shapes that flow through a run:

CandidateItem:
    A normalized, not-yet-scored item produced by a source adapter.
    Identity is the URL: two items with the same URL are the same story
    regardless of title or content.

ScoredItem:
    A CandidateItem augmented with an importance score, a category and
    up to three summary bullets. Produced by the scorer.

Both models are frozen. Optional fields that carry no value are None in
memory and absent from ``to_record()`` output; consumers treat "absent"
as the only negative signal.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.category import Category, normalize_category

# Number of raw-content characters used when a summary must be synthesized
FALLBACK_SUMMARY_CHARS = 120

DEFAULT_SCORE = 5.0
MAX_BULLETS = 3


def _parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp leniently.

    Upstreams occasionally return 'unknown' or an empty string; anything
    unparseable becomes None rather than failing the item. Naive values
    are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CandidateItem(BaseModel):
    """A news or social item fetched from an upstream source.

    Attributes:
        title: Headline (tweets: first 100 characters of the text)
        url: Canonical URL, the item's identity
        source_domain: Host of the URL without a leading 'www.'
        raw_content: Source text or short summary from the upstream
        published_at: Publication timestamp if known (UTC)
        author_handle: Posting account for timeline items
        image_url: Thumbnail for timeline items with attached media

    Example:
        >>> item = CandidateItem(
        ...     title="Anthropic releases a new model",
        ...     url="https://anthropic.com/news/model",
        ...     source_domain="anthropic.com",
        ...     raw_content="Anthropic today released...",
        ... )
        >>> item.to_record()["url"]
        'https://anthropic.com/news/model'
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(description="Item headline")
    url: str = Field(min_length=1, description="Canonical URL (identity)")
    source_domain: str = Field(default="", description="Host without leading www.")
    raw_content: str = Field(default="", description="Upstream text or summary")
    published_at: datetime | None = Field(default=None, description="Publication time (UTC)")
    author_handle: str | None = Field(default=None, description="Posting account handle")
    image_url: str | None = Field(default=None, description="Thumbnail URL")

    @field_validator("published_at", mode="before")
    @classmethod
    def _lenient_published_at(cls, value):
        return _parse_timestamp(value)

    @field_validator("author_handle", "image_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def fallback_summary(self) -> str:
        """First 120 characters of the raw content."""
        return self.raw_content[:FALLBACK_SUMMARY_CHARS]

    def to_record(self) -> dict:
        """Dump to a plain dict, omitting optional fields that are unset."""
        return self.model_dump(exclude_none=True)

    def __str__(self) -> str:
        """Human-readable representation for logging."""
        return f"CandidateItem('{self.title[:50]}', {self.url})"


class ScoredItem(CandidateItem):
    """A candidate item with the scorer's verdict attached.

    Attributes:
        score: Importance from 1 (noise) to 10 (groundbreaking)
        summary_bullets: Up to three short bullet points, in order
        category: One of the fixed Category values
    """

    score: float = Field(default=DEFAULT_SCORE, ge=1.0, le=10.0, description="Importance 1-10")
    summary_bullets: list[str] = Field(
        default_factory=list,
        max_length=MAX_BULLETS,
        description="Ordered summary bullets (at most 3)",
    )
    category: Category = Field(default=Category.OTHER, description="Topic category")

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        return normalize_category(value)

    @classmethod
    def from_candidate(
        cls,
        item: CandidateItem,
        score: float = DEFAULT_SCORE,
        summary_bullets: list[str] | None = None,
        category: Category | str = Category.OTHER,
    ) -> "ScoredItem":
        """Attach scoring fields to a candidate item."""
        return cls(
            **item.model_dump(include=set(CandidateItem.model_fields)),
            score=score,
            summary_bullets=summary_bullets if summary_bullets is not None else [],
            category=category,
        )

    @classmethod
    def with_defaults(cls, item: CandidateItem) -> "ScoredItem":
        """Score an item with the fallback verdict.

        Used whenever the scorer has nothing to say about an item: score 5,
        category Other, and a single bullet holding the first 120
        characters of the raw content.
        """
        return cls.from_candidate(
            item,
            score=DEFAULT_SCORE,
            summary_bullets=[item.fallback_summary],
            category=Category.OTHER,
        )

    def __str__(self) -> str:
        """Human-readable representation for logging."""
        return f"ScoredItem('{self.title[:50]}', {self.score:g}, {self.category.value})"
