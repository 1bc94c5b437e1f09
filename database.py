"""Database operations for Dossier.

This module provides SQLite-based storage for dossier configurations,
delivery history and writing styles. It is the concrete configuration
repository and style repository used by the scheduler and pipeline.

Database Schema:
    configurations table:
        - id (INTEGER, PK): Configuration identity
        - title (TEXT): Dossier name
        - email (TEXT): Recipient address
        - feed_urls (TEXT): JSON array of feed URLs
        - max_item_count (INTEGER): 1-50 items after aggregation
        - frequency (TEXT): 'daily', 'weekly' or 'monthly'
        - delivery_time (TEXT): Canonical 'HH:MM'
        - timezone (TEXT): IANA zone name
        - style, language, special_instructions (TEXT)
        - active (INTEGER): 0/1 flag
        - created_at, updated_at (TEXT): UTC ISO-8601

    deliveries table (append-only):
        - id (INTEGER, PK)
        - config_id (INTEGER): FK to configurations
        - delivered_at (TEXT): UTC ISO-8601 with microseconds
        - summary (TEXT): Final dossier text
        - item_count (INTEGER)
        - success (INTEGER): 0/1 flag

    styles table:
        - name (TEXT, PK): Style name
        - prompt (TEXT): Generation instructions
        - is_system_default (INTEGER): 0/1 flag

Features:
    - WAL mode for concurrent read/write access
    - Idempotent seeding of the system-default styles
    - Delivery times normalized to 'HH:MM' on write
    - Context manager support for auto-cleanup

The connection is only used from the event-loop thread.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from models import SYSTEM_STYLES, Configuration, DeliveryRecord, Frequency, Style
from trigger import normalize_delivery_time

logger = logging.getLogger(__name__)


def _to_text(dt: datetime) -> str:
    """Serialize an instant as UTC ISO-8601 (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str) -> datetime:
    """Parse stored ISO-8601 text into an aware UTC datetime."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Database:
    """SQLite database for configurations, deliveries and styles.

    Example:
        >>> with Database("dossier.db") as db:
        ...     for config in db.list_active():
        ...         last = db.get_last_delivery(config.id)
    """

    # SQL schema for all tables and indexes
    SCHEMA = """
    -- One row per recurring dossier
    CREATE TABLE IF NOT EXISTS configurations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL DEFAULT '',
        email TEXT NOT NULL,
        feed_urls TEXT NOT NULL DEFAULT '[]',     -- JSON array
        max_item_count INTEGER NOT NULL DEFAULT 20
            CHECK (max_item_count BETWEEN 1 AND 50),
        frequency TEXT NOT NULL DEFAULT 'daily',
        delivery_time TEXT NOT NULL DEFAULT '08:00',
        timezone TEXT NOT NULL DEFAULT 'UTC',
        style TEXT NOT NULL DEFAULT 'professional',
        language TEXT NOT NULL DEFAULT 'English',
        special_instructions TEXT NOT NULL DEFAULT '',
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Scheduler lists active configurations every tick
    CREATE INDEX IF NOT EXISTS idx_configurations_active ON configurations(active);

    -- Append-only delivery history
    CREATE TABLE IF NOT EXISTS deliveries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        config_id INTEGER NOT NULL REFERENCES configurations(id) ON DELETE CASCADE,
        delivered_at TEXT NOT NULL,
        summary TEXT NOT NULL DEFAULT '',
        item_count INTEGER NOT NULL DEFAULT 0,
        success INTEGER NOT NULL DEFAULT 1
    );

    -- Last-delivery lookup per configuration
    CREATE INDEX IF NOT EXISTS idx_deliveries_config ON deliveries(config_id, success, delivered_at);

    -- Writing styles
    CREATE TABLE IF NOT EXISTS styles (
        name TEXT PRIMARY KEY,
        prompt TEXT NOT NULL,
        is_system_default INTEGER NOT NULL DEFAULT 0
    );
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Initialize database connection.

        Creates the database file if it doesn't exist, sets up the schema
        and seeds the system-default styles. Uses WAL mode for better
        concurrent access. Pass ':memory:' for a throwaway database.

        Args:
            path: Path to SQLite database file
        """
        self.path = Path(path)
        self.conn = sqlite3.connect(str(self.path))
        self.conn.row_factory = sqlite3.Row  # Enable dict-like row access

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()
        logger.debug("Database initialized | path=%s", self.path)

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist.

        Also seeds the default styles.
        """
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        self._seed_styles()

    def _seed_styles(self) -> None:
        """Insert system-default styles that are not present yet."""
        cursor = self.conn.executemany(
            "INSERT OR IGNORE INTO styles (name, prompt, is_system_default) VALUES (?, ?, 1)",
            [(style.name, style.prompt) for style in SYSTEM_STYLES],
        )
        self.conn.commit()
        if cursor.rowcount > 0:
            logger.info("Styles seeded | count=%d", cursor.rowcount)

    # === Configurations ===

    @staticmethod
    def _row_to_config(row: sqlite3.Row) -> Configuration:
        return Configuration(
            id=row["id"],
            title=row["title"],
            email=row["email"],
            feed_urls=json.loads(row["feed_urls"] or "[]"),
            max_item_count=row["max_item_count"],
            frequency=row["frequency"],
            delivery_time=row["delivery_time"],
            timezone=row["timezone"],
            style=row["style"],
            language=row["language"],
            special_instructions=row["special_instructions"],
            active=bool(row["active"]),
            created_at=_from_text(row["created_at"]),
            updated_at=_from_text(row["updated_at"]),
        )

    def list_active(self) -> list[Configuration]:
        """Get all active configurations.

        Rows that cannot be loaded are skipped with a warning so one bad
        row never blocks the rest of the tick.

        Returns:
            Active configurations ordered by id
        """
        cursor = self.conn.execute("SELECT * FROM configurations WHERE active = 1 ORDER BY id")
        configs = []
        for row in cursor.fetchall():
            try:
                configs.append(self._row_to_config(row))
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning("Configuration skipped | id=%s error=%s", row["id"], e)
        return configs

    def get_config(self, config_id: int) -> Configuration | None:
        """Get a configuration by id.

        Returns:
            The configuration or None if not found
        """
        cursor = self.conn.execute("SELECT * FROM configurations WHERE id = ?", (config_id,))
        row = cursor.fetchone()
        return self._row_to_config(row) if row else None

    def save_config(self, config: Configuration) -> Configuration:
        """Insert or update a configuration.

        A configuration with id 0 is inserted; any other id is updated.
        The delivery time is stored in canonical 'HH:MM' form.

        Args:
            config: Configuration to save

        Returns:
            The stored configuration (with id and normalized delivery time)

        Raises:
            ValueError: If frequency, delivery time or timezone is invalid
        """
        Frequency(config.frequency)
        delivery_time = normalize_delivery_time(config.delivery_time)
        try:
            ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {config.timezone!r}")

        now = datetime.now(timezone.utc)
        values = (
            config.title,
            config.email,
            json.dumps(config.feed_urls),
            config.max_item_count,
            config.frequency,
            delivery_time,
            config.timezone,
            config.style,
            config.language,
            config.special_instructions,
            int(config.active),
        )

        if config.id:
            cursor = self.conn.execute(
                """
                UPDATE configurations SET
                    title = ?, email = ?, feed_urls = ?, max_item_count = ?,
                    frequency = ?, delivery_time = ?, timezone = ?, style = ?,
                    language = ?, special_instructions = ?, active = ?, updated_at = ?
                WHERE id = ?
                """,
                (*values, _to_text(now), config.id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"Configuration {config.id} does not exist")
            config_id = config.id
            created_at = config.created_at
        else:
            cursor = self.conn.execute(
                """
                INSERT INTO configurations
                (title, email, feed_urls, max_item_count, frequency, delivery_time,
                 timezone, style, language, special_instructions, active,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*values, _to_text(now), _to_text(now)),
            )
            config_id = cursor.lastrowid
            created_at = now
        self.conn.commit()
        logger.info("Configuration saved | id=%d frequency=%s time=%s", config_id, config.frequency, delivery_time)
        return config.model_copy(
            update={
                "id": config_id,
                "delivery_time": delivery_time,
                "created_at": created_at,
                "updated_at": now,
            }
        )

    # === Deliveries ===

    @staticmethod
    def _row_to_delivery(row: sqlite3.Row) -> DeliveryRecord:
        return DeliveryRecord(
            id=row["id"],
            config_id=row["config_id"],
            delivered_at=_from_text(row["delivered_at"]),
            summary=row["summary"],
            item_count=row["item_count"],
            success=bool(row["success"]),
        )

    def get_last_delivery(self, config_id: int) -> DeliveryRecord | None:
        """Get the most recent successful delivery for a configuration.

        Returns:
            The latest successful record, or None if there is none
        """
        cursor = self.conn.execute(
            """
            SELECT * FROM deliveries
            WHERE config_id = ? AND success = 1
            ORDER BY delivered_at DESC, id DESC
            LIMIT 1
            """,
            (config_id,),
        )
        row = cursor.fetchone()
        return self._row_to_delivery(row) if row else None

    def record_delivery(self, record: DeliveryRecord) -> int:
        """Append a delivery record.

        Args:
            record: Record to store

        Returns:
            Row id of the new record

        Raises:
            sqlite3.Error: If the insert fails
        """
        cursor = self.conn.execute(
            """
            INSERT INTO deliveries (config_id, delivered_at, summary, item_count, success)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.config_id,
                _to_text(record.delivered_at),
                record.summary,
                record.item_count,
                int(record.success),
            ),
        )
        self.conn.commit()
        logger.debug("Delivery recorded | config=%d items=%d", record.config_id, record.item_count)
        return cursor.lastrowid

    def list_deliveries(self, config_id: int | None = None, limit: int = 20) -> list[DeliveryRecord]:
        """Get recent delivery records, newest first.

        Args:
            config_id: Restrict to one configuration (None = all)
            limit: Maximum number of records
        """
        if config_id is None:
            cursor = self.conn.execute(
                "SELECT * FROM deliveries ORDER BY delivered_at DESC, id DESC LIMIT ?",
                (limit,),
            )
        else:
            cursor = self.conn.execute(
                "SELECT * FROM deliveries WHERE config_id = ? ORDER BY delivered_at DESC, id DESC LIMIT ?",
                (config_id, limit),
            )
        return [self._row_to_delivery(row) for row in cursor.fetchall()]

    # === Styles ===

    def lookup_style(self, name: str) -> str | None:
        """Resolve a style name to its generation instructions.

        Returns:
            Instruction text, or None if the style does not exist
        """
        cursor = self.conn.execute("SELECT prompt FROM styles WHERE name = ?", (name,))
        row = cursor.fetchone()
        return row["prompt"] if row else None

    def list_styles(self) -> list[Style]:
        """Get all styles, system defaults first."""
        cursor = self.conn.execute(
            "SELECT name, prompt, is_system_default FROM styles ORDER BY is_system_default DESC, name"
        )
        return [
            Style(name=row["name"], prompt=row["prompt"], is_system_default=bool(row["is_system_default"]))
            for row in cursor.fetchall()
        ]

    def stats(self) -> dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with configuration, delivery and style counts plus
            the most recent delivery instant (or None)
        """
        row = self.conn.execute(
            "SELECT COUNT(*) AS total, SUM(active) AS active FROM configurations"
        ).fetchone()
        deliveries = self.conn.execute(
            "SELECT COUNT(*) AS total, SUM(success) AS successful, MAX(delivered_at) AS latest FROM deliveries"
        ).fetchone()
        styles = self.conn.execute("SELECT COUNT(*) AS total FROM styles").fetchone()

        return {
            "configurations": row["total"] or 0,
            "active": row["active"] or 0,
            "deliveries": deliveries["total"] or 0,
            "successful": deliveries["successful"] or 0,
            "last_delivery": _from_text(deliveries["latest"]) if deliveries["latest"] else None,
            "styles": styles["total"] or 0,
        }

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
