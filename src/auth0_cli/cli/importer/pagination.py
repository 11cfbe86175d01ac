"""Page-by-page retrieval of Management API collections."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

PageFetcher = Callable[[int, int], Awaitable[tuple[list[Any], bool]]]


async def fetch_all(
    fetch_page: PageFetcher,
    limit: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[Any]:
    """Collect items from ``fetch_page(page, per_page)`` until exhausted.

    Args:
        fetch_page: Coroutine returning ``(items, has_next)`` for one page
        limit: Maximum number of items; 0 fetches everything
        page_size: Items requested per page

    Returns:
        All items, in page order. Any error raised by ``fetch_page`` propagates
        and nothing collected so far is returned.
    """
    items: list[Any] = []
    page = 0

    while True:
        per_page = page_size
        if limit > 0:
            # Shrink the last page to avoid fetching unwanted elements
            want = limit - len(items)
            if want <= 0:
                break
            per_page = min(want, page_size)

        result, has_next = await fetch_page(page, per_page)
        page += 1
        items.extend(result)

        if (limit > 0 and len(items) >= limit) or not has_next:
            break

    logger.debug("Fetched %d items in %d pages", len(items), page)
    return items[:limit] if limit > 0 else items
