"""Deliver a finished dossier and record the delivery.

Order matters: the dossier is sent first and recorded only after the send
succeeded. A failed send records nothing, so the configuration stays due
and is retried on a later tick within its delivery minute (or the next
period). A failed record after a successful send is only logged; the
recipient already has the dossier, and the missing record means a repeat
delivery is possible if the configuration is evaluated again.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol

from errors import DeliveryError
from models import Configuration, DeliveryRecord, Item

logger = logging.getLogger(__name__)


class Sender(Protocol):
    async def send(self, config: Configuration, text: str, items: list[Item]) -> None: ...


class DeliveryRecorder(Protocol):
    def record_delivery(self, record: DeliveryRecord) -> int: ...


async def deliver_and_record(
    config: Configuration,
    text: str,
    items: list[Item],
    sender: Sender,
    repository: DeliveryRecorder,
    now: datetime | None = None,
) -> DeliveryRecord:
    """Send the dossier, then persist a successful delivery record.

    Args:
        config: Configuration the dossier belongs to
        text: Final synthesized text
        items: Items sent with the dossier
        sender: Delivery collaborator
        repository: Store for delivery records
        now: Delivery instant (defaults to now, UTC)

    Returns:
        The delivery record (id is 0 when recording failed)

    Raises:
        DeliveryError: If sending failed; nothing is recorded
    """
    try:
        await sender.send(config, text, items)
    except DeliveryError:
        raise
    except Exception as e:
        raise DeliveryError(f"Delivery failed for configuration {config.id}: {e}") from e

    record = DeliveryRecord(
        config_id=config.id,
        delivered_at=now or datetime.now(timezone.utc),
        summary=text,
        item_count=len(items),
        success=True,
    )

    try:
        record.id = repository.record_delivery(record)
    except Exception as e:
        logger.error(
            "Delivery record failed after send | config=%s error=%s (repeat delivery possible)",
            config.id, e,
        )
        return record

    logger.info("Delivery recorded | config=%s record=%d items=%d", config.id, record.id, record.item_count)
    return record
