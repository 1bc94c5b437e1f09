"""Async feed fetching and parsing module.

This module is the feed collaborator: it fetches one RSS/Atom feed and
converts its entries into Item objects. Aggregation across a
configuration's feeds lives in ``aggregator.py``.

Features:
    - One pooled aiohttp session shared by all fetches
    - SSL certificate handling with fallback
    - Publication date from published/updated/created fields

Error Handling Strategy:
    - Every failure for a feed surfaces as FeedError(url, reason)
    - SSL errors trigger a retry without verification
    - Entries without titles are skipped
    - Entries without dates get the fetch instant
"""

import asyncio
import logging
from datetime import datetime, timezone

import aiohttp
import feedparser

from errors import FeedError
from models import Item
from tools.utils import USER_AGENT, create_ssl_context

logger = logging.getLogger(__name__)


def _parse_date(entry: dict) -> datetime | None:
    """Extract publication date from feed entry.

    Tries multiple date fields in order of preference:
    1. published_parsed - Standard RSS pubDate
    2. updated_parsed - Atom updated timestamp
    3. created_parsed - Less common creation date

    Returns:
        Datetime in UTC, or None if no valid date found
    """
    for field in ("published_parsed", "updated_parsed", "created_parsed"):
        time_tuple = entry.get(field)
        if time_tuple:
            try:
                return datetime(*time_tuple[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _entry_content(entry: dict) -> str:
    """Full body of an entry (Atom <content> or RSS content:encoded)."""
    for part in entry.get("content") or []:
        value = part.get("value", "")
        if value:
            return value
    return ""


def parse_feed_content(content: str, source_url: str) -> list[Item]:
    """Parse feed content into Item objects.

    Args:
        content: Raw feed content (XML/RSS/Atom)
        source_url: URL of the feed (stored in Item.source_url)

    Returns:
        List of Item objects (may be empty)

    Raises:
        FeedError: If the content is not a feed at all
    """
    feed = feedparser.parse(content)
    if feed.get("bozo") and not feed.entries:
        reason = feed.get("bozo_exception") or "unparseable feed"
        raise FeedError(source_url, f"parse error: {reason}")

    fetched_at = datetime.now(timezone.utc)
    items = []

    for entry in feed.entries:
        title = entry.get("title", "").strip()
        if not title:
            continue

        published = _parse_date(entry)
        if not published:
            published = fetched_at
            logger.debug("Feed entry missing date, using fetch time: %s", title[:50])

        items.append(Item(
            title=title,
            link=entry.get("link", ""),
            description=entry.get("description", "") or entry.get("summary", ""),
            content=_entry_content(entry),
            author=entry.get("author", ""),
            published=published,
            source_url=source_url,
        ))

    return items


class FeedFetcher:
    """Fetches single feeds over one pooled HTTP session.

    Use as an async context manager so the session is closed on exit.

    Example:
        >>> async with FeedFetcher(timeout=30) as fetcher:
        ...     items = await fetcher.fetch("https://example.com/feed.xml")
    """

    def __init__(self, timeout: float = 30.0, max_connections: int = 10):
        self.timeout = timeout
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "FeedFetcher":
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self.max_connections),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _download(self, url: str, verify_ssl: bool = True) -> str:
        """Download feed content, retrying once without SSL verification."""
        if self._session is None:
            raise RuntimeError("FeedFetcher used outside 'async with'")
        try:
            async with self._session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": USER_AGENT},
                ssl=create_ssl_context(verify_ssl),
            ) as resp:
                if resp.status != 200:
                    raise FeedError(url, f"HTTP {resp.status}")
                return await resp.text()
        except aiohttp.ClientSSLError as e:
            if verify_ssl:
                logger.debug("Feed %s: SSL error, retrying without verification", url)
                return await self._download(url, verify_ssl=False)
            raise FeedError(url, f"SSL verification failed after retry: {e}") from e
        except asyncio.TimeoutError as e:
            raise FeedError(url, f"request timed out after {self.timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise FeedError(url, f"{type(e).__name__}: {e}") from e

    async def fetch(self, url: str) -> list[Item]:
        """Fetch and parse a single feed.

        Args:
            url: Feed URL

        Returns:
            Items from the feed, in feed order

        Raises:
            FeedError: On any network, HTTP or parse failure
        """
        content = await self._download(url)
        items = parse_feed_content(content, url)
        logger.debug("Feed %s: %d items", url, len(items))
        return items
