"""Dossier configuration model.

A configuration is one recurring dossier: which feeds to read, how many
items to keep, when and how often to deliver, in which timezone, with
which style and language, and to whom.

Frequency Handling:
    ``frequency`` is stored as a plain string so rows written by other
    tools can always be loaded. The trigger evaluator compares it against
    the ``Frequency`` enum and treats anything else as a configuration-data
    error (never due). ``Database.save_config`` validates it strictly.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Frequency(str, Enum):
    """How often a dossier is delivered.

    DAILY: Every day at the delivery time
    WEEKLY: Mondays at the delivery time
    MONTHLY: First day of the month at the delivery time
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Upper bound carried over from the storage constraint
MAX_ITEM_COUNT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Configuration(BaseModel):
    """A user-defined recurring dossier.

    Attributes:
        id: Repository identity (0 until saved)
        title: Human-readable name, used in the e-mail subject
        email: Recipient address
        feed_urls: Ordered feed source URLs
        max_item_count: Maximum items kept after aggregation (>= 1)
        frequency: 'daily', 'weekly' or 'monthly'
        delivery_time: Time of day, canonical form 'HH:MM'
        timezone: IANA zone name the delivery time is expressed in
        style: Style name resolved through the style repository
        language: Target language of the synthesized text
        special_instructions: Optional free-text instructions
        active: Inactive configurations are never scheduled

    Example:
        >>> config = Configuration(
        ...     title="Morning AI",
        ...     email="me@example.com",
        ...     feed_urls=["https://simonwillison.net/atom/everything/"],
        ...     frequency="daily",
        ...     delivery_time="08:00",
        ...     timezone="Europe/Berlin",
        ... )
    """

    id: int = Field(default=0, description="Repository identity")
    title: str = Field(default="", description="Dossier name")
    email: str = Field(description="Recipient address")
    feed_urls: list[str] = Field(default_factory=list, description="Feed source URLs")
    max_item_count: int = Field(default=20, ge=1, le=MAX_ITEM_COUNT)
    frequency: str = Field(default=Frequency.DAILY.value)
    delivery_time: str = Field(default="08:00", description="Time of day")
    timezone: str = Field(default="UTC", description="IANA timezone name")
    style: str = Field(default="professional", description="Style name")
    language: str = Field(default="English", description="Target language")
    special_instructions: str = Field(default="")
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def frequency_enum(self) -> Frequency | None:
        """Parsed frequency, or None when the stored value is not recognized."""
        try:
            return Frequency(self.frequency)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        """Short identifier for log lines."""
        return f"{self.id}:{self.title[:40]}" if self.title else str(self.id)

    def __str__(self) -> str:
        return f"Configuration({self.label}, {self.frequency} at {self.delivery_time} {self.timezone})"
