"""Run-level models: per-branch fetch results and the run outcome."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from models.story import CandidateItem


class RunStatus(str, Enum):
    """Overall status recorded for a run.

    SKIPPED is part of the shared log vocabulary (the digest job uses it);
    the ingestion pipeline only ever records SUCCESS or ERROR.
    """

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class RunOutcome(BaseModel):
    """Outcome of a single ingestion run, written to the run log.

    Attributes:
        items_stored: Number of scored items actually inserted
        status: success, skipped or error
        error_detail: Failure description when status is error
        ran_at: When the run finished (UTC)
    """

    model_config = ConfigDict(frozen=True)

    items_stored: int = Field(default=0, ge=0)
    status: RunStatus
    error_detail: str | None = None
    ran_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def success(cls, items_stored: int) -> "RunOutcome":
        return cls(items_stored=items_stored, status=RunStatus.SUCCESS)

    @classmethod
    def error(cls, detail: str, items_stored: int = 0) -> "RunOutcome":
        return cls(items_stored=items_stored, status=RunStatus.ERROR, error_detail=detail)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dict."""
        return self.model_dump(mode="json", exclude_none=True)


@dataclass
class FetchResult:
    """Tagged result of one fan-out branch (a search query or the timeline group).

    Exactly one of ``items`` (on success) or ``error`` (on failure) is
    meaningful. Branches never raise; the coordinator partitions results
    on ``ok``.
    """

    source: str  # "search" or "timeline"
    target: str  # query string or group label
    items: list[CandidateItem] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe_error(self) -> str:
        """Short 'Type: message' form for logs and run details."""
        if self.error is None:
            return ""
        return f"{type(self.error).__name__}: {self.error}"
