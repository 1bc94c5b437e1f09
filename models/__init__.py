"""Pydantic models for the Dossier scheduler and pipeline.

This package contains the data models shared by every component:

Configuration:
    A recurring dossier (feeds, schedule, timezone, style, recipient).
    ``Frequency`` enumerates the supported schedules.

Item:
    Transient feed entry produced by the feed collaborator and cleaned
    by the distillation pipeline.

DeliveryRecord:
    Append-only evidence of a successful delivery, used for duplicate
    suppression.

Style:
    Named generation instructions. ``SYSTEM_STYLES`` lists the defaults
    seeded into the database.

Example:
    >>> from models import Configuration, Item
    >>> config = Configuration(email="me@example.com", feed_urls=["https://..."])
"""

from models.configuration import Configuration, Frequency, MAX_ITEM_COUNT
from models.item import Item
from models.delivery import DeliveryRecord
from models.style import (
    DEFAULT_STYLE_NAME,
    DEFAULT_STYLE_PROMPT,
    PERMISSIVE_STYLE_NAME,
    SYSTEM_STYLES,
    Style,
)

__all__ = [
    "Configuration",
    "Frequency",
    "MAX_ITEM_COUNT",
    "Item",
    "DeliveryRecord",
    "Style",
    "SYSTEM_STYLES",
    "DEFAULT_STYLE_NAME",
    "DEFAULT_STYLE_PROMPT",
    "PERMISSIVE_STYLE_NAME",
]
