"""Content aggregation for one configuration.

Fetches every feed of a configuration concurrently, tolerates individual
feed failures, and returns the newest items up to the configuration's
maximum item count.
"""

import asyncio
import logging
from typing import Protocol

from errors import AggregationError
from models import Configuration, Item

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Feed collaborator: one URL in, items out, FeedError on failure."""

    async def fetch(self, url: str) -> list[Item]: ...


async def aggregate(config: Configuration, fetcher: Fetcher) -> tuple[list[Item], int]:
    """Gather items for a configuration.

    Feeds are fetched concurrently. A failed feed is logged and skipped.
    The combined items are sorted newest first and truncated to
    ``config.max_item_count``.

    Args:
        config: Configuration whose feeds to read
        fetcher: Feed collaborator

    Returns:
        Tuple of (items, number of feeds that failed)

    Raises:
        AggregationError: If no items remain
    """
    urls = config.feed_urls
    results = await asyncio.gather(*(fetcher.fetch(url) for url in urls), return_exceptions=True)

    items: list[Item] = []
    failures = 0
    for url, result in zip(urls, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.warning("Feed skipped | config=%s url=%s error=%s", config.id, url, result)
            failures += 1
            continue
        items.extend(result)

    items.sort(key=lambda item: item.published, reverse=True)
    items = items[: config.max_item_count]

    logger.info(
        "Feeds aggregated | config=%s items=%d feeds=%d errors=%d",
        config.id, len(items), len(urls), failures,
    )

    if not items:
        raise AggregationError(f"No items from {len(urls)} feed(s) for configuration {config.id}")
    return items, failures
