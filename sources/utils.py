"""Shared utilities for source adapters.

This module contains the HTTP helper, constants and parsing helpers used
by more than one adapter (and by the scorer, for code fences).
"""

import asyncio
import re
import ssl
from typing import Any

import aiohttp
import certifi

from errors import MalformedResponse, UpstreamUnavailable

USER_AGENT = "Mozilla/5.0 (compatible; TheSignal/1.0)"

# Matches ```json / ``` fence markers anywhere in a model response
_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")


def create_ssl_context() -> ssl.SSLContext:
    """Create an SSL context that verifies against the certifi bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace.

    Example:
        >>> strip_code_fences('```json\\n[1, 2]\\n```')
        '[1, 2]'
    """
    return _CODE_FENCE.sub("", text or "").strip()


async def request_text(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
    json_body: Any = None,
    timeout: float = 30,
    source: str = "upstream",
) -> tuple[int, str]:
    """Issue one HTTP request and return (status, body text).

    Status handling is left to the caller. Connection failures and
    timeouts are raised as UpstreamUnavailable. TLS verification uses
    the session connector's SSL context.

    Args:
        session: Shared aiohttp client session
        method: HTTP method
        url: Request URL
        headers: Extra request headers (User-Agent is always set)
        params: Query string parameters
        json_body: JSON request body
        timeout: Total request timeout in seconds
        source: Label used in error messages

    Returns:
        Tuple of HTTP status and decoded body

    Raises:
        UpstreamUnavailable: On network error or timeout
        MalformedResponse: If the body cannot be decoded as text
    """
    request_headers = {"User-Agent": USER_AGENT, **(headers or {})}
    try:
        async with session.request(
            method,
            url,
            headers=request_headers,
            params=params,
            json=json_body,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            try:
                return resp.status, await resp.text()
            except UnicodeDecodeError as e:
                raise MalformedResponse(f"{source}: response body is not valid text: {e}") from e
    except asyncio.TimeoutError as e:
        raise UpstreamUnavailable(f"{source}: request timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise UpstreamUnavailable(f"{source}: {type(e).__name__}: {e}") from e


def is_success(status: int) -> bool:
    """True for 2xx statuses."""
    return 200 <= status < 300
