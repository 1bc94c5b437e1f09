"""Delivery record model.

Delivery records are append-only. The most recent successful record per
configuration is what the trigger evaluator uses for duplicate suppression.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class DeliveryRecord(BaseModel):
    """Evidence that a dossier was generated and sent.

    Attributes:
        id: Repository identity (0 until saved)
        config_id: Configuration the dossier belongs to
        delivered_at: Delivery instant (timezone-aware, UTC)
        summary: Final synthesized text
        item_count: Number of items sent with the dossier
        success: True when the delivery collaborator accepted the dossier
    """

    id: int = 0
    config_id: int
    delivered_at: datetime
    summary: str = ""
    item_count: int = 0
    success: bool = True

    def __str__(self) -> str:
        return f"DeliveryRecord(config={self.config_id}, at={self.delivered_at.isoformat()}, items={self.item_count})"
