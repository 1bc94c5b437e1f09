"""Article fetching for one-shot summaries.

Fetches an article page and reduces it to readable text so it can be
summarized with ``summarize --url``.

Features:
    - SSL fallback for problematic certificates
    - HTML-to-text conversion (skips scripts, styles, head)
    - Content truncation to keep prompts small
"""

import html
import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from io import StringIO

import aiohttp

from tools.utils import USER_AGENT, create_ssl_context, strip_tags, truncate

logger = logging.getLogger(__name__)

# Longest article body passed on to the summarizer
MAX_CONTENT_LENGTH = 8000


class _HTMLTextExtractor(HTMLParser):
    """Collect page text, ignoring non-content tags.

    Usage:
        >>> parser = _HTMLTextExtractor()
        >>> parser.feed("<p>Hello <script>ignored</script> world</p>")
        >>> parser.get_text()
        'Hello  world'
    """

    SKIP_TAGS = frozenset({"script", "style", "head", "meta", "link", "noscript"})

    def __init__(self):
        super().__init__()
        self._buffer = StringIO()
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self.SKIP_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in self.SKIP_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data):
        if self._skip_depth == 0:
            self._buffer.write(data)

    def get_text(self) -> str:
        return self._buffer.getvalue()


def extract_text(page: str) -> str:
    """Extract readable, whitespace-normalized text from an HTML page."""
    parser = _HTMLTextExtractor()
    try:
        parser.feed(page)
        text = parser.get_text()
    except AssertionError:
        # HTMLParser gives up on some malformed markup
        text = strip_tags(page)
    return re.sub(r"\s+", " ", text).strip()


def extract_title(page: str) -> str:
    match = re.search(r"<title[^>]*>([^<]+)</title>", page, re.IGNORECASE)
    return html.unescape(match.group(1).strip()) if match else ""


@dataclass
class ArticleContent:
    """Fetched article content."""

    url: str
    title: str
    content: str
    success: bool
    error: str | None = None


async def fetch_article(
    url: str,
    timeout: float = 30,
    max_length: int = MAX_CONTENT_LENGTH,
) -> ArticleContent:
    """Fetch and extract text from an article URL.

    Args:
        url: Article URL
        timeout: Request timeout in seconds
        max_length: Max content length

    Returns:
        ArticleContent with extracted text, or success=False and the error
    """
    logger.debug("Fetching article: %s", url)

    async def fetch_with_ssl(session: aiohttp.ClientSession, verify: bool) -> str:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={"User-Agent": USER_AGENT},
            ssl=create_ssl_context(verify),
        ) as resp:
            resp.raise_for_status()
            return await resp.text(errors="replace")

    try:
        async with aiohttp.ClientSession() as session:
            try:
                page = await fetch_with_ssl(session, verify=True)
            except aiohttp.ClientSSLError:
                logger.debug("SSL error, retrying without verification: %s", url)
                page = await fetch_with_ssl(session, verify=False)
    except aiohttp.ClientResponseError as e:
        return ArticleContent(url=url, title="", content="", success=False, error=f"HTTP {e.status}")
    except (aiohttp.ClientError, TimeoutError) as e:
        logger.warning("Article fetch failed | url=%s error=%s", url, e)
        return ArticleContent(url=url, title="", content="", success=False, error=str(e) or type(e).__name__)

    content = truncate(extract_text(page), max_length, "... [truncated]")
    return ArticleContent(url=url, title=extract_title(page), content=content, success=True)
