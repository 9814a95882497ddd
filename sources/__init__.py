"""Upstream source adapters for the ingestion pipeline.

SearchSource:
    One search-API request per topic query; parses a (possibly fenced)
    JSON array of stories.

TimelineSource:
    One request per monitored account; maps posts to items, collecting
    per-account failures in a TimelineBatch.

normalize_item / normalize_batch:
    The item normalizer shared by both adapters.
"""

from sources.normalize import domain_from_url, normalize_batch, normalize_item
from sources.search import SearchSource
from sources.timeline import TimelineBatch, TimelineSource

__all__ = [
    "SearchSource",
    "TimelineSource",
    "TimelineBatch",
    "normalize_item",
    "normalize_batch",
    "domain_from_url",
]
