"""Generation-backed stages of the Dossier pipeline.

This package contains the generation client and the three distillation
stages built on top of it:

GenerationClient:
    Single non-streaming completions. Hosted models go through PydanticAI
    agents; ``openai:<model>@<base_url>`` targets a local OpenAI-compatible
    server (Ollama by default).

Selector (stage A):
    Picks the most relevant items when there are more than the selection
    threshold. Falls back to all items on any failure.

Extractor (stage B):
    Rewrites each item as 2-3 factual sentences. Per-item fallback to the
    original text.

Synthesizer (stage C):
    Writes the final dossier in the configured style and language.
    Failure aborts the run.

Summarizer:
    One-shot summary of a single article, used by the CLI.

Example:
    >>> from agents import GenerationClient, Selector
    >>> selector = Selector(GenerationClient(config), threshold=10, target_count=10)
"""

from agents.generator import GenerationClient, Generator, Profile
from agents.selector import Selection, Selector, parse_indices
from agents.extractor import Extractor
from agents.synthesizer import Synthesizer, collapse_blank_lines
from agents.summarizer import Summarizer

__all__ = [
    "GenerationClient",
    "Generator",
    "Profile",
    "Selection",
    "Selector",
    "parse_indices",
    "Extractor",
    "Synthesizer",
    "collapse_blank_lines",
    "Summarizer",
]
