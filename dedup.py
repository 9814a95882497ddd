"""URL-based deduplication of candidate items.

Identity is the URL. An incoming item is dropped when its URL is
already in storage or appeared earlier in the same batch. Single pass,
first occurrence wins, relative order preserved.
"""

from typing import Iterable

from models.story import CandidateItem


def dedupe(
    incoming: Iterable[CandidateItem],
    existing_urls: Iterable[str],
) -> list[CandidateItem]:
    """Remove items whose URL is already known.

    Args:
        incoming: Items in fetch order
        existing_urls: URLs already persisted

    Returns:
        New list with one item per previously unseen URL

    Example:
        >>> a = CandidateItem(title="A", url="https://a.com")
        >>> b = CandidateItem(title="B", url="https://b.com")
        >>> [i.title for i in dedupe([a, b, a], {"https://b.com"})]
        ['A']
    """
    seen = set(existing_urls)
    result = []
    for item in incoming:
        if item.url in seen:
            continue
        seen.add(item.url)
        result.append(item)
    return result
