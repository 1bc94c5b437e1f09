"""Trigger evaluation: is a configuration due right now?

The evaluator is a pure decision function. Given a configuration, the
current instant and read access to delivery history, it answers whether a
dossier should be generated in this minute. It never writes.

Decision Steps:
    1. Resolve the configuration's IANA zone (fallback: DEFAULT_TIMEZONE)
    2. Convert ``now`` into that zone (naive values are taken as UTC)
    3. Parse the delivery time through the fallback chain below
    4. Require an exact hour and minute match
    5. Apply frequency-specific duplicate suppression against the most
       recent successful delivery:
         daily    local date differs
         weekly   Monday, and (ISO year, ISO week) differs
         monthly  day 1, and (year, month) differs

Delivery Time Formats (tried in order):
    'HH:MM'                         canonical form written by the repository
    'HH:MM:SS'
    ISO-8601 / RFC 3339 timestamp   time of day taken, date ignored
    '...THH:MM[:SS]...'             e.g. '0000-01-01T08:00:00Z' from some drivers

Reading history is the only fallible side effect; on any error the
evaluator fails open (due) so a flaky store cannot silently stop delivery.
"""

import logging
import re
from datetime import datetime, time, timezone
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models import Configuration, DeliveryRecord, Frequency

logger = logging.getLogger(__name__)

# Time of day embedded after a 'T' separator, for timestamps Python cannot
# represent (year 0000)
_EMBEDDED_TIME = re.compile(r"T(\d{2}):(\d{2})(?::(\d{2}))?")


class DeliveryHistory(Protocol):
    """Read access to delivery records."""

    def get_last_delivery(self, config_id: int) -> DeliveryRecord | None: ...


def resolve_zone(name: str, default: str = "UTC") -> ZoneInfo:
    """Resolve an IANA zone name, falling back to ``default`` when unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using default | timezone=%r default=%s", name, default)
        return ZoneInfo(default)


def parse_delivery_time(value: str | time | None) -> time | None:
    """Parse a stored delivery time into a time of day.

    Args:
        value: Stored value in any supported encoding

    Returns:
        The time of day (seconds dropped), or None if nothing matched
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not value:
        return None

    text = value.strip()

    if len(text) == 5 and text[2] == ":":
        try:
            return datetime.strptime(text, "%H:%M").time()
        except ValueError:
            pass

    try:
        return datetime.strptime(text, "%H:%M:%S").time().replace(second=0)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text)
        return parsed.time().replace(second=0, microsecond=0)
    except ValueError:
        pass

    match = _EMBEDDED_TIME.search(text)
    if match:
        try:
            return time(int(match.group(1)), int(match.group(2)))
        except ValueError:
            return None

    return None


def normalize_delivery_time(value: str | time) -> str:
    """Convert any accepted delivery time encoding to canonical 'HH:MM'.

    Raises:
        ValueError: If the value cannot be parsed
    """
    parsed = parse_delivery_time(value)
    if parsed is None:
        raise ValueError(f"Invalid delivery time: {value!r}")
    return parsed.strftime("%H:%M")


def is_due(
    config: Configuration,
    now: datetime,
    history: DeliveryHistory,
    default_timezone: str = "UTC",
) -> bool:
    """Decide whether ``config`` should be generated at ``now``.

    Args:
        config: Configuration to evaluate
        now: Current instant (naive values are taken as UTC)
        history: Source of the most recent successful delivery
        default_timezone: Zone used when the configured zone is invalid

    Returns:
        True if a dossier should be generated in this minute
    """
    zone = resolve_zone(config.timezone, default_timezone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(zone)

    target = parse_delivery_time(config.delivery_time)
    if target is None:
        logger.warning(
            "Trigger skipped | config=%s reason=invalid_delivery_time value=%r",
            config.id, config.delivery_time,
        )
        return False

    if local_now.hour != target.hour or local_now.minute != target.minute:
        return False

    frequency = config.frequency_enum
    if frequency is None:
        logger.warning(
            "Trigger skipped | config=%s reason=unknown_frequency value=%r",
            config.id, config.frequency,
        )
        return False

    if frequency == Frequency.WEEKLY and local_now.weekday() != 0:
        return False
    if frequency == Frequency.MONTHLY and local_now.day != 1:
        return False

    try:
        last = history.get_last_delivery(config.id)
    except Exception as e:
        logger.error("Delivery history unavailable, treating as due | config=%s error=%s", config.id, e)
        return True

    if last is None:
        return True

    last_local = last.delivered_at
    if last_local.tzinfo is None:
        last_local = last_local.replace(tzinfo=timezone.utc)
    last_local = last_local.astimezone(zone)

    if frequency == Frequency.DAILY:
        return last_local.date() != local_now.date()
    if frequency == Frequency.WEEKLY:
        return last_local.isocalendar()[:2] != local_now.isocalendar()[:2]
    return (last_local.year, last_local.month) != (local_now.year, local_now.month)
