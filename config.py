"""Configuration management for the Dossier scheduler.

This module provides centralized configuration for all components.
All settings are loaded from environment variables with sensible defaults.
Per-dossier settings (feeds, schedule, style) live in the database, not here.

Environment Variables:
    Models (PydanticAI format - provider:model):
        DEFAULT_MODEL: Model for selection, extraction and synthesis
        PERMISSIVE_MODEL: Model used for the permissive ('sweary') style
        Local OpenAI-compatible servers use 'openai:<model>@<base_url>'

    Pipeline:
        SELECTION_THRESHOLD: Item count above which selection runs
        TARGET_COUNT: Number of items selection asks for
        EXTRACT_CONCURRENCY: Concurrent extraction calls (1 = sequential)
        PIPELINE_TIMEOUT_SECONDS: Timeout for each pipeline generation call
        SUMMARY_TIMEOUT_SECONDS: Timeout for one-shot summaries
        DEFAULT_LANGUAGE: Language that needs no explicit directive

    Scheduling:
        TICK_SECONDS: Interval between scheduler ticks
        MAX_WORKERS: Maximum concurrent dossier runs
        RUN_TIMEOUT_SECONDS: Deadline for one complete dossier run
        DEFAULT_TIMEZONE: Zone used when a configuration's zone is invalid
        FEED_TIMEOUT_SECONDS: HTTP timeout for a single feed fetch

    Storage:
        DB_PATH: SQLite database file path

    SMTP:
        SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD,
        SMTP_FROM_EMAIL, SMTP_FROM_NAME

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_DIR: Directory for log files
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


# Local Ollama defaults; any OpenAI-compatible endpoint works
DEFAULT_MODEL = "openai:llama3.2:3b@http://localhost:11434/v1"
DEFAULT_PERMISSIVE_MODEL = "openai:dolphin-mistral:latest@http://localhost:11434/v1"


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === AI Models ===
    # PydanticAI format: provider:model, or openai:<model>@<base_url> for local servers
    default_model: str = DEFAULT_MODEL  # DEFAULT_MODEL - Selection, extraction, synthesis
    permissive_model: str = DEFAULT_PERMISSIVE_MODEL  # PERMISSIVE_MODEL - 'sweary' style

    # === Pipeline ===
    selection_threshold: int = 10  # SELECTION_THRESHOLD - Select only above this count
    target_count: int = 10  # TARGET_COUNT - Items requested from selection
    extract_concurrency: int = 1  # EXTRACT_CONCURRENCY - Parallel extraction calls
    pipeline_timeout_seconds: float = 600.0  # PIPELINE_TIMEOUT_SECONDS - Per call
    summary_timeout_seconds: float = 300.0  # SUMMARY_TIMEOUT_SECONDS - One-shot summaries
    default_language: str = "English"  # DEFAULT_LANGUAGE - No directive needed

    # === Scheduling ===
    tick_seconds: int = 60  # TICK_SECONDS - Scheduler tick interval
    max_workers: int = 4  # MAX_WORKERS - Concurrent dossier runs
    run_timeout_seconds: float = 600.0  # RUN_TIMEOUT_SECONDS - Deadline per run
    default_timezone: str = "UTC"  # DEFAULT_TIMEZONE - Fallback for invalid zones
    feed_timeout_seconds: float = 30.0  # FEED_TIMEOUT_SECONDS - Per feed request

    # === Database ===
    db_path: Path = field(default_factory=lambda: Path("dossier.db"))  # DB_PATH

    # === SMTP ===
    smtp_host: str = "localhost"  # SMTP_HOST
    smtp_port: int = 587  # SMTP_PORT - 465 = implicit TLS, otherwise STARTTLS if offered
    smtp_username: str = ""  # SMTP_USERNAME - Login skipped when empty
    smtp_password: str = ""  # SMTP_PASSWORD
    smtp_from_email: str = "dossier@localhost"  # SMTP_FROM_EMAIL
    smtp_from_name: str = "Dossier"  # SMTP_FROM_NAME

    # === Logging Configuration ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            default_model=_env("DEFAULT_MODEL", DEFAULT_MODEL),
            permissive_model=_env("PERMISSIVE_MODEL", DEFAULT_PERMISSIVE_MODEL),
            selection_threshold=_env_int("SELECTION_THRESHOLD", 10),
            target_count=_env_int("TARGET_COUNT", 10),
            extract_concurrency=_env_int("EXTRACT_CONCURRENCY", 1),
            pipeline_timeout_seconds=_env_float("PIPELINE_TIMEOUT_SECONDS", 600.0),
            summary_timeout_seconds=_env_float("SUMMARY_TIMEOUT_SECONDS", 300.0),
            default_language=_env("DEFAULT_LANGUAGE", "English"),
            tick_seconds=_env_int("TICK_SECONDS", 60),
            max_workers=_env_int("MAX_WORKERS", 4),
            run_timeout_seconds=_env_float("RUN_TIMEOUT_SECONDS", 600.0),
            default_timezone=_env("DEFAULT_TIMEZONE", "UTC"),
            feed_timeout_seconds=_env_float("FEED_TIMEOUT_SECONDS", 30.0),
            db_path=Path(_env("DB_PATH", "dossier.db")),
            smtp_host=_env("SMTP_HOST", "localhost"),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_username=_env("SMTP_USERNAME"),
            smtp_password=_env("SMTP_PASSWORD"),
            smtp_from_email=_env("SMTP_FROM_EMAIL", "dossier@localhost"),
            smtp_from_name=_env("SMTP_FROM_NAME", "Dossier"),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration values.

        Checks:
            - Both model strings are set
            - Numeric values are positive
            - DEFAULT_TIMEZONE is a known IANA zone
            - Log level and format are recognized

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.default_model:
            return "DEFAULT_MODEL must be set"
        if not self.permissive_model:
            return "PERMISSIVE_MODEL must be set"
        if self.selection_threshold <= 0:
            return "SELECTION_THRESHOLD must be positive"
        if self.target_count <= 0:
            return "TARGET_COUNT must be positive"
        if self.extract_concurrency <= 0:
            return "EXTRACT_CONCURRENCY must be positive"
        if self.pipeline_timeout_seconds <= 0 or self.summary_timeout_seconds <= 0:
            return "Generation timeouts must be positive"
        if self.tick_seconds <= 0:
            return "TICK_SECONDS must be positive"
        if self.max_workers <= 0:
            return "MAX_WORKERS must be positive"
        if self.run_timeout_seconds <= 0:
            return "RUN_TIMEOUT_SECONDS must be positive"
        if self.feed_timeout_seconds <= 0:
            return "FEED_TIMEOUT_SECONDS must be positive"
        try:
            ZoneInfo(self.default_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return f"Invalid DEFAULT_TIMEZONE '{self.default_timezone}'"
        if not 0 < self.smtp_port < 65536:
            return f"Invalid SMTP_PORT {self.smtp_port}"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
