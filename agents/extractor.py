"""Stage B: reduce each item to a few plain factual sentences.

Each selected item's description (or body, when the description is empty)
is rewritten by the model into 2-3 objective sentences with markup
removed. A failed call keeps the item's original text. Items are returned
as copies; the input list is not modified.
"""

import asyncio
import logging

from agents.generator import Generator
from errors import GenerationError
from models import Item
from tools.utils import strip_tags

logger = logging.getLogger(__name__)


def build_extraction_prompt(item: Item) -> str:
    return (
        "Extract the key information from this article into 2-3 plain text sentences. "
        "Remove all HTML, formatting, opinions and speculation.\n"
        "Focus on information, events, and data.\n\n"
        f"Title: {item.title}\n\n"
        f"Content: {item.text}\n\n"
        "Return only 2-3 sentences with no HTML:"
    )


class Extractor:
    """Runs stage B against a generator.

    Attributes:
        fallbacks: Items that kept their original text in the last call
    """

    def __init__(self, generator: Generator, concurrency: int = 1, timeout: float | None = None):
        self.generator = generator
        self.concurrency = concurrency
        self.timeout = timeout
        self.fallbacks = 0

    async def _extract_one(self, item: Item) -> tuple[str, bool]:
        """Return (cleaned text, used_fallback)."""
        source = item.text
        if not source:
            return item.title, False

        try:
            response = await self.generator.generate(build_extraction_prompt(item), timeout=self.timeout)
        except GenerationError as e:
            logger.warning("Extraction fell back to original text | title=%s error=%s", item.title[:50], e)
            return source, True

        cleaned = strip_tags(response).strip()
        if not cleaned:
            logger.warning("Extraction returned no text | title=%s", item.title[:50])
            return source, True
        return cleaned, False

    async def extract(self, items: list[Item]) -> list[Item]:
        """Replace each item's text with extracted facts.

        Args:
            items: Selected items

        Returns:
            Cleaned copies, in input order
        """
        self.fallbacks = 0
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(item: Item) -> Item:
            async with semaphore:
                text, fell_back = await self._extract_one(item)
            if fell_back:
                self.fallbacks += 1
                return item.model_copy()
            # Both fields carry the cleaned text
            return item.model_copy(update={"description": text, "content": text})

        cleaned = await asyncio.gather(*(run(item) for item in items))
        logger.info("Extraction complete | items=%d fallbacks=%d", len(cleaned), self.fallbacks)
        return list(cleaned)
