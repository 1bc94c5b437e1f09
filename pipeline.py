"""Distillation pipeline: aggregated items in, dossier text out.

Pipeline Flow:
    1. SELECT: Above the selection threshold, ask the model which items to
       keep (falls back to all items on any failure)
    2. EXTRACT: Rewrite each kept item as 2-3 factual sentences (per-item
       fallback to the original text)
    3. SYNTHESIZE: One styled, language-aware summary of all cleaned items
       (failure aborts the run with SynthesisError)

The pipeline works on copies: the caller's item list is never modified.
Stages run strictly one after another; only extraction may fan out, and
only up to EXTRACT_CONCURRENCY calls at once.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from agents.extractor import Extractor
from agents.generator import Generator, Profile
from agents.selector import Selector
from agents.synthesizer import StyleRepository, Synthesizer
from config import Config
from models import Configuration, Item
from observability.tracing import trace_operation

logger = logging.getLogger(__name__)


@dataclass
class DistillStats:
    """Statistics from a single distillation run.

    Attributes:
        items_in: Items handed to the pipeline
        selected: Items kept by stage A
        selection_degraded: Stage A was attempted but fell back to all items
        extraction_fallbacks: Items that kept their original text in stage B
        generation_calls: Generation requests issued across all stages
        output_chars: Length of the final text
        duration: Total run time in seconds
    """

    items_in: int = 0
    selected: int = 0
    selection_degraded: bool = False
    extraction_fallbacks: int = 0
    generation_calls: int = 0
    output_chars: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


@dataclass
class DistillResult:
    """Final text plus the items it was written from."""

    text: str
    items: list[Item]
    stats: DistillStats = field(default_factory=DistillStats)


class _CountingGenerator:
    """Wraps a generator and counts requests."""

    def __init__(self, inner: Generator):
        self.inner = inner
        self.calls = 0

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        profile: Profile = Profile.DEFAULT,
        timeout: float | None = None,
    ) -> str:
        self.calls += 1
        return await self.inner.generate(prompt, system=system, profile=profile, timeout=timeout)


class DistillPipeline:
    """Three-stage distillation over one configuration's items.

    Example:
        >>> pipeline = DistillPipeline(config, GenerationClient(config), db)
        >>> result = await pipeline.run(dossier_config, items)
        >>> print(result.text)
    """

    def __init__(self, config: Config, generator: Generator, styles: StyleRepository):
        """Initialize the pipeline.

        Args:
            config: Application configuration (thresholds, timeouts)
            generator: Generation collaborator
            styles: Style repository used by synthesis
        """
        self.config = config
        self.generator = generator
        self.styles = styles

    async def run(self, dossier: Configuration, items: list[Item]) -> DistillResult:
        """Run select, extract and synthesize for one configuration.

        Args:
            dossier: Configuration (style, language, instructions)
            items: Aggregated items, newest first

        Returns:
            DistillResult with the final text and the cleaned items

        Raises:
            SynthesisError: If the final stage fails
        """
        start = time.time()
        counter = _CountingGenerator(self.generator)
        timeout = self.config.pipeline_timeout_seconds
        stats = DistillStats(items_in=len(items))

        selector = Selector(
            counter,
            threshold=self.config.selection_threshold,
            target_count=self.config.target_count,
            timeout=timeout,
        )
        extractor = Extractor(counter, concurrency=self.config.extract_concurrency, timeout=timeout)
        synthesizer = Synthesizer(
            counter,
            self.styles,
            default_language=self.config.default_language,
            timeout=timeout,
        )

        logger.info("Distillation started | config=%s items=%d style=%s", dossier.id, len(items), dossier.style)

        try:
            with trace_operation("distill.select", {"config_id": dossier.id, "items": len(items)}) as attrs:
                selection = await selector.select(list(items), dossier.special_instructions)
                stats.selected = len(selection.items)
                stats.selection_degraded = selection.degraded
                attrs["selected"] = stats.selected

            with trace_operation("distill.extract", {"config_id": dossier.id, "items": stats.selected}) as attrs:
                cleaned = await extractor.extract(selection.items)
                stats.extraction_fallbacks = extractor.fallbacks
                attrs["fallbacks"] = stats.extraction_fallbacks

            with trace_operation("distill.synthesize", {"config_id": dossier.id, "style": dossier.style}) as attrs:
                text = await synthesizer.synthesize(dossier, cleaned)
                stats.output_chars = len(text)
                attrs["chars"] = stats.output_chars
        finally:
            stats.generation_calls = counter.calls
            stats.duration = time.time() - start
            logger.info(
                "Distillation done | config=%s duration=%.1fs in=%d selected=%d degraded=%s fallbacks=%d calls=%d chars=%d",
                dossier.id, stats.duration, stats.items_in, stats.selected, stats.selection_degraded,
                stats.extraction_fallbacks, stats.generation_calls, stats.output_chars,
            )

        return DistillResult(text=text, items=cleaned, stats=stats)
