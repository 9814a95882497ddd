"""Search-style source adapter (Perplexity chat completions).

One request per topic query. The upstream model is asked, in natural
language, for at most five recent stories as a JSON array; nothing here
enforces that beyond parsing what comes back.

Error Handling:
    - Missing API key: ConfigurationMissing (no request is made)
    - Network error or timeout: UpstreamUnavailable
    - Non-2xx status: UpstreamError with the first 200 chars of the body
    - Body or content not a JSON array: MalformedResponse
    - Individual entries without title/url: skipped, not fatal
"""

import json
import logging

import aiohttp

from config import Config
from errors import ConfigurationMissing, MalformedResponse, UpstreamError
from models.story import CandidateItem
from sources.normalize import normalize_batch
from sources.utils import is_success, request_text, strip_code_fences

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

SYSTEM_PROMPT = """You are a news extraction assistant. Given a search query about AI news,
return a JSON array of the most relevant, distinct news stories from the last 24 hours.
Each item must have: title, url, sourceDomain, rawContent (2-3 sentence summary), publishedAt (ISO string if known).
Return ONLY the JSON array, no other text. Maximum 5 stories per query."""


def parse_search_content(content: str) -> list[dict]:
    """Parse the model's text blob into a list of raw story dicts.

    Args:
        content: Message content, possibly wrapped in a ```json fence

    Returns:
        List of raw entries (not yet normalized)

    Raises:
        MalformedResponse: If the content is not a JSON array
    """
    cleaned = strip_code_fences(content)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"search content is not JSON: {e}") from e
    if not isinstance(data, list):
        raise MalformedResponse(f"search content is not a JSON array: {type(data).__name__}")
    return data


class SearchSource:
    """Fetches candidate items for a topic query from the search upstream.

    Example:
        >>> source = SearchSource(config)
        >>> async with aiohttp.ClientSession() as session:
        ...     items = await source.fetch(session, "AI safety alignment research")
    """

    name = "search"

    def __init__(self, config: Config):
        self.api_key = config.perplexity_api_key
        self.model = config.perplexity_model
        self.timeout = config.request_timeout_seconds

    def _payload(self, query: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Find the latest AI news stories for: {query}"},
            ],
            "return_citations": True,
        }

    async def fetch(self, session: aiohttp.ClientSession, query: str) -> list[CandidateItem]:
        """Fetch and normalize items for one query.

        Args:
            session: Shared aiohttp client session
            query: Natural-language topic query

        Returns:
            Candidate items in upstream order

        Raises:
            ConfigurationMissing, UpstreamUnavailable, UpstreamError, MalformedResponse
        """
        if not self.api_key:
            raise ConfigurationMissing("PERPLEXITY_API_KEY")

        status, body = await request_text(
            session,
            "POST",
            PERPLEXITY_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json_body=self._payload(query),
            timeout=self.timeout,
            source="search",
        )
        if not is_success(status):
            raise UpstreamError(status, body, source="search")

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"search body is not JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if content is None:
            content = "[]"
        if not isinstance(content, str):
            raise MalformedResponse("search message content is not text")

        items = normalize_batch(parse_search_content(content), source="search")
        logger.debug("Search query done | query=%s items=%d", query[:60], len(items))
        return items
