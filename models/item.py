"""Item data model for feed entries.

Each Item is one piece of source content fetched from a feed. Items are
created fresh on every aggregation pass and discarded after the run; they
are never persisted.

The distillation pipeline replaces ``description``/``content`` with cleaned
text on its own copies (``model_copy``), so the aggregated list handed to it
is never modified.
"""

from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, Field


class Item(BaseModel):
    """A single entry from a content feed.

    Attributes:
        title: Entry headline
        link: Canonical URL of the entry
        description: Short description (often HTML)
        content: Optional full body
        author: Optional author name
        published: Publication timestamp (UTC)
        source_url: URL of the feed the entry came from

    Example:
        >>> item = Item(
        ...     title="New model released",
        ...     link="https://example.com/post",
        ...     description="<p>Details...</p>",
        ...     published=datetime.now(timezone.utc),
        ... )
        >>> item.source_domain
        'example.com'
    """

    title: str = Field(description="Entry headline")
    link: str = Field(default="", description="Canonical entry URL")
    description: str = Field(default="", description="Short description")
    content: str = Field(default="", description="Full body, if the feed provides one")
    author: str = Field(default="", description="Author name")
    published: datetime = Field(description="Publication timestamp (UTC)")
    source_url: str = Field(default="", description="Feed URL")

    @property
    def text(self) -> str:
        """Description, or the body when the description is empty."""
        return self.description or self.content

    @property
    def source_domain(self) -> str:
        """Host part of the link, without a leading 'www.'."""
        host = urlparse(self.link).netloc
        return host[4:] if host.startswith("www.") else host

    def __str__(self) -> str:
        return f"Item('{self.title[:50]}', {self.published:%Y-%m-%d %H:%M})"
