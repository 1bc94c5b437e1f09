"""One-shot summarization of a single item.

Used by the ``summarize`` command for previews. It runs outside the
scheduled pipeline and uses the shorter summary timeout.
"""

import logging
from datetime import datetime, timezone

from agents.generator import Generator
from config import Config
from errors import DossierError
from models import Item
from tools.fetch import fetch_article

logger = logging.getLogger(__name__)


def build_summary_prompt(item: Item) -> str:
    content = item.content or item.description
    return f"Please provide a concise summary of this article:\n\nTitle: {item.title}\n\n{content}"


class Summarizer:
    """Summarizes one item, or one article fetched from a URL."""

    def __init__(self, config: Config, generator: Generator):
        """Initialize the summarizer.

        Args:
            config: Application configuration (summary timeout)
            generator: Generation client
        """
        self.config = config
        self.generator = generator

    async def summarize_item(self, item: Item) -> str:
        """Summarize a single item.

        Raises:
            GenerationError: If the generation call fails
        """
        summary = await self.generator.generate(
            build_summary_prompt(item),
            timeout=self.config.summary_timeout_seconds,
        )
        logger.info("Item summarized | title=%s chars=%d", item.title[:50], len(summary))
        return summary.strip()

    async def summarize_url(self, url: str) -> str:
        """Fetch an article page and summarize its text.

        Raises:
            DossierError: If the page cannot be fetched or summarized
        """
        article = await fetch_article(url, timeout=self.config.feed_timeout_seconds)
        if not article.success:
            raise DossierError(f"Could not fetch {url}: {article.error}")

        item = Item(
            title=article.title or url,
            link=url,
            content=article.content,
            published=datetime.now(timezone.utc),
        )
        return await self.summarize_item(item)
