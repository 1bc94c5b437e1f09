"""Stage A: choose the most relevant items when there are too many.

When a configuration yields more items than the selection threshold, the
model is shown every title with a short preview and asked for the numbers
of the items to keep. Its answer is parsed with ``parse_indices``; any
failure falls back to the full item list.

Index Grammar:
    1. Remove every character that is not a digit, comma or whitespace
    2. Split on commas
    3. Keep each trimmed piece that is a non-empty run of ASCII digits
       (so '1 2' is dropped), as an integer
    4. Drop zero

Range filtering against the item count happens in ``Selector.select``.
Duplicates are kept.
"""

import logging
import re
from dataclasses import dataclass

from agents.generator import Generator
from errors import GenerationError
from models import Item
from tools.utils import truncate

logger = logging.getLogger(__name__)

# Preview length for each item in the selection prompt
MAX_DESCRIPTION_LENGTH = 150

_NON_INDEX_CHARS = re.compile(r"[^\d,\s]")


def parse_indices(response: str) -> list[int]:
    """Extract 1-based indices from a model response.

    Examples:
        >>> parse_indices("1, 3, 7, 12, 15")
        [1, 3, 7, 12, 15]
        >>> parse_indices("Articles: 2,2,99")
        [2, 2, 99]
        >>> parse_indices("no numbers here")
        []
    """
    cleaned = _NON_INDEX_CHARS.sub("", response.strip())
    indices = []
    for piece in cleaned.split(","):
        piece = piece.strip()
        if not piece or not (piece.isascii() and piece.isdigit()):
            continue
        value = int(piece)
        if value > 0:
            indices.append(value)
    return indices


def build_selection_prompt(items: list[Item], target_count: int, special_instructions: str = "") -> str:
    """Build the selection prompt listing every item with a short preview."""
    lines = [
        "You are a news editor selecting articles for a digest. "
        f"From the following {len(items)} articles, select exactly {target_count} "
        "that are most important and cover diverse topics.",
        "",
    ]
    if special_instructions:
        lines.append(
            "If these special instructions pertain to article selection, use them. "
            "If they do not, ignore them. Do not comment on whether or not you used them: "
            + special_instructions
        )
        lines.append("")

    lines.append("Return ONLY comma-separated numbers (e.g., 1,3,7,12). No explanations.")
    lines.append("")

    for i, item in enumerate(items, start=1):
        lines.append(f"{i}. {item.title}")
        if item.description:
            lines.append(f"   {truncate(item.description, MAX_DESCRIPTION_LENGTH)}")
        lines.append("")

    return "\n".join(lines)


@dataclass
class Selection:
    """Outcome of stage A.

    Attributes:
        items: Items to carry forward
        degraded: True when selection was attempted but fell back to all items
    """

    items: list[Item]
    degraded: bool = False


class Selector:
    """Runs stage A against a generator."""

    def __init__(
        self,
        generator: Generator,
        threshold: int = 10,
        target_count: int = 10,
        timeout: float | None = None,
    ):
        self.generator = generator
        self.threshold = threshold
        self.target_count = target_count
        self.timeout = timeout

    async def select(self, items: list[Item], special_instructions: str = "") -> Selection:
        """Select items, or pass them through when at or below the threshold.

        Never raises for generation problems; they degrade to the full list.
        """
        if len(items) <= self.threshold:
            return Selection(items=list(items))

        prompt = build_selection_prompt(items, self.target_count, special_instructions)
        try:
            response = await self.generator.generate(prompt, timeout=self.timeout)
        except GenerationError as e:
            logger.warning("Selection degraded, using all items | items=%d error=%s", len(items), e)
            return Selection(items=list(items), degraded=True)

        indices = parse_indices(response)
        selected = [items[i - 1] for i in indices if 1 <= i <= len(items)]
        if not selected:
            logger.warning(
                "Selection degraded, no valid indices | items=%d response=%r",
                len(items), response[:100],
            )
            return Selection(items=list(items), degraded=True)

        logger.info("Items selected | indices=%s total=%d", indices, len(items))
        return Selection(items=selected)
