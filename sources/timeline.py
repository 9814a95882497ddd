"""Account-timeline source adapter (SocialData X/Twitter search).

One request per monitored handle, searching ``from:<handle> -filter:replies``
for the latest posts. Each post becomes one candidate item:

    title:         first 100 characters of the post text (empty for
                   link-only posts, which are still kept)
    url:           first outbound link that does not point back at
                   twitter.com / x.com, else the post's own x.com URL
    sourceDomain:  host of that URL without 'www.' (x.com for post URLs)
    imageUrl:      preview image of the first photo/video/animated_gif
                   attachment, omitted when there is none

Handles are fetched concurrently and independently: a failure or an
unauthorized response for one handle is collected in the batch's
``failures`` and never stops the others.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from config import Config
from errors import ConfigurationMissing, MalformedResponse, UpstreamError
from models.run import FetchResult
from models.story import CandidateItem
from sources.normalize import domain_from_url, normalize_item
from sources.utils import is_success, request_text

logger = logging.getLogger(__name__)

SOCIALDATA_URL = "https://api.socialdata.tools/twitter/search"

MAX_TITLE_CHARS = 100

_SELF_HOSTS = ("twitter.com", "x.com")
_THUMBNAIL_MEDIA_TYPES = ("photo", "video", "animated_gif")


@dataclass
class TimelineBatch:
    """Combined result of fetching every monitored handle.

    Attributes:
        items: Items from handles that succeeded, in handle order
        failures: One tagged result per handle that failed
    """

    items: list[CandidateItem] = field(default_factory=list)
    failures: list[FetchResult] = field(default_factory=list)


def _pick_outbound_link(entities: Any) -> dict | None:
    """First link whose expanded URL is not a twitter.com/x.com URL.

    Entries that are not objects, or whose expanded_url is not a string,
    are ignored.
    """
    if not isinstance(entities, dict):
        return None
    for link in entities.get("urls") or []:
        if not isinstance(link, dict):
            continue
        expanded = link.get("expanded_url")
        if isinstance(expanded, str) and expanded and not any(host in expanded for host in _SELF_HOSTS):
            return link
    return None


def _pick_thumbnail(tweet: dict) -> str | None:
    extended = tweet.get("extended_entities")
    media = extended.get("media") if isinstance(extended, dict) else None
    for item in media or []:
        if not isinstance(item, dict) or item.get("type") not in _THUMBNAIL_MEDIA_TYPES:
            continue
        thumbnail = item.get("media_url_https")
        return thumbnail if isinstance(thumbnail, str) and thumbnail else None
    return None


def tweet_to_raw(tweet: dict[str, Any]) -> dict[str, Any]:
    """Map a SocialData tweet object into the adapter wire dict.

    Args:
        tweet: Tweet object from the upstream response

    Returns:
        Dict with title, url, sourceDomain, rawContent, publishedAt,
        authorHandle and, only when media is attached, imageUrl

    Raises:
        MalformedResponse: If the tweet lacks its id or author, or its
            text is not a string
    """
    try:
        screen_name = tweet["user"]["screen_name"]
        tweet_id = tweet["id_str"]
    except (KeyError, TypeError) as e:
        raise MalformedResponse(f"tweet is missing {e}") from e

    text = tweet.get("full_text") or tweet.get("text") or ""
    if not isinstance(text, str):
        raise MalformedResponse(f"tweet {tweet_id} text is not a string")
    link = _pick_outbound_link(tweet.get("entities") or {})

    if link:
        url = link["expanded_url"]
        display = link.get("display_url")
        display = display if isinstance(display, str) else ""
        source_domain = domain_from_url(url) or display.split("/")[0] or "unknown"
    else:
        url = f"https://x.com/{screen_name}/status/{tweet_id}"
        source_domain = "x.com"

    raw = {
        "title": text[:MAX_TITLE_CHARS],
        "url": url,
        "sourceDomain": source_domain,
        "rawContent": text,
        "publishedAt": tweet.get("tweet_created_at"),
        "authorHandle": screen_name,
    }
    thumbnail = _pick_thumbnail(tweet)
    if thumbnail:
        raw["imageUrl"] = thumbnail
    return raw


class TimelineSource:
    """Fetches recent posts for monitored accounts.

    Example:
        >>> source = TimelineSource(config)
        >>> batch = await source.fetch_all(session, ["karpathy", "levie"])
        >>> len(batch.items), len(batch.failures)
        (37, 0)
    """

    name = "timeline"

    def __init__(self, config: Config):
        self.api_key = config.socialdata_api_key
        self.timeout = config.request_timeout_seconds

    async def fetch(self, session: aiohttp.ClientSession, handle: str) -> list[CandidateItem]:
        """Fetch one account's latest posts.

        Raises:
            ConfigurationMissing, UpstreamUnavailable, UpstreamError, MalformedResponse
        """
        if not self.api_key:
            raise ConfigurationMissing("SOCIALDATA_API_KEY")

        status, body = await request_text(
            session,
            "GET",
            SOCIALDATA_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            params={"query": f"from:{handle} -filter:replies", "type": "Latest"},
            timeout=self.timeout,
            source=f"timeline @{handle}",
        )
        if not is_success(status):
            raise UpstreamError(status, body, source=f"timeline @{handle}")

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"timeline body for @{handle} is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"timeline body for @{handle} is not an object")

        items = []
        for tweet in data.get("tweets") or []:
            try:
                items.append(normalize_item(tweet_to_raw(tweet), require_title=False))
            except (MalformedResponse, ValueError) as e:
                logger.debug("Skipped malformed tweet | handle=%s error=%s", handle, e)
        return items

    async def fetch_all(
        self,
        session: aiohttp.ClientSession,
        handles: list[str],
    ) -> TimelineBatch:
        """Fetch all handles concurrently.

        Per-handle failures are collected, not raised. Only a group-level
        problem (no API key at all) raises.

        Raises:
            ConfigurationMissing: If SOCIALDATA_API_KEY is not set
        """
        if not handles:
            return TimelineBatch()
        if not self.api_key:
            raise ConfigurationMissing("SOCIALDATA_API_KEY")

        tasks = [self.fetch(session, handle) for handle in handles]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        batch = TimelineBatch()
        for handle, result in zip(handles, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                failure = FetchResult(source=self.name, target=handle, error=result)
                logger.warning("Timeline fetch failed | handle=%s error=%s", handle, failure.describe_error())
                batch.failures.append(failure)
            else:
                batch.items.extend(result)

        logger.info(
            "Timelines fetched | items=%d accounts=%d errors=%d",
            len(batch.items), len(handles), len(batch.failures),
        )
        return batch
