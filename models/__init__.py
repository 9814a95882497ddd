"""Pydantic models for The Signal ingestion pipeline.

CandidateItem:
    Normalized item produced by a source adapter. Identity is the URL.

ScoredItem:
    CandidateItem plus score, summary bullets and category.

Category:
    Fixed set of story categories (Model Releases, Research, ...).

RunOutcome / RunStatus:
    Result of one pipeline run, recorded in the run log.

FetchResult:
    Tagged ok/error result of one fetch branch.

Example:
    >>> from models import CandidateItem, ScoredItem
    >>> item = CandidateItem(title="...", url="https://example.com/a")
    >>> ScoredItem.with_defaults(item).score
    5.0
"""

from models.category import Category, normalize_category
from models.story import CandidateItem, ScoredItem
from models.run import FetchResult, RunOutcome, RunStatus

__all__ = [
    "Category",
    "normalize_category",
    "CandidateItem",
    "ScoredItem",
    "FetchResult",
    "RunOutcome",
    "RunStatus",
]
