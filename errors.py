"""Exception hierarchy for Dossier.

Collaborator failures are wrapped into these types at the boundary
(``raise FeedError(...) from e``) so the scheduler's unit of work can tell
expected failures apart from programming errors.

    DossierError
    ├── FeedError          one feed could not be fetched or parsed
    ├── AggregationError   no items at all for a configuration
    ├── GenerationError    the text-generation service failed
    ├── SynthesisError     the final synthesis stage failed (aborts the run)
    └── DeliveryError      the dossier could not be sent
"""


class DossierError(Exception):
    """Base class for expected, per-configuration failures."""


class FeedError(DossierError):
    """Raised when a single feed cannot be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class AggregationError(DossierError):
    """Raised when aggregation produced no items."""


class GenerationError(DossierError):
    """Raised when a generation call fails or returns nothing usable."""


class SynthesisError(DossierError):
    """Raised when the synthesis stage cannot produce the dossier text."""


class DeliveryError(DossierError):
    """Raised when the delivery collaborator rejects or fails to send."""
