"""Logging setup for the scheduler and the CLI.

Every dossier run executes in its own asyncio task under ``run_context``,
which tags its log lines with a run ID and the configuration ID. Tasks
copy the context when they are created, so concurrent runs never see each
other's tags.

Text lines look like::

    2024-01-01 08:00:02 INFO    [cfg3-1a2b3c4d] scheduler: Run started | config=3

With LOG_FORMAT=json each line is one object carrying ``run_id`` and
``config_id`` as separate fields, plus any ``extra=`` values.

Console output goes to stderr so that commands printing JSON or HTML on
stdout stay machine-readable.
"""

import contextvars
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Any, Iterator

LOG_FILE = "dossier.log"

# Libraries that log request-level chatter at INFO
QUIET_LOGGERS = ("aiohttp", "asyncio", "httpx", "httpcore", "openai", "logfire", "urllib3")

run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")
config_id_var: contextvars.ContextVar[int | None] = contextvars.ContextVar("config_id", default=None)

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "run_id", "config_id"}


def new_run_id(config_id: int | None = None) -> str:
    """Create a short run ID, prefixed with the configuration when given."""
    suffix = uuid.uuid4().hex[:8]
    return f"cfg{config_id}-{suffix}" if config_id is not None else suffix


@contextmanager
def run_context(run_id: str, config_id: int | None = None) -> Iterator[str]:
    """Tag log lines emitted inside the block with a run and configuration."""
    run_token = run_id_var.set(run_id)
    config_token = config_id_var.set(config_id)
    try:
        yield run_id
    finally:
        config_id_var.reset(config_token)
        run_id_var.reset(run_token)


class ContextFilter(logging.Filter):
    """Copy the current run tags onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.config_id = config_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: timestamp (record time, UTC), level, logger, message, run_id,
    config_id when inside a run, exception when present, then extras.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
        }
        config_id = getattr(record, "config_id", None)
        if config_id is not None:
            entry["config_id"] = config_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                entry[key] = value

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines; the console drops the date."""

    def __init__(self, include_date: bool = False):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(run_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S",
        )


def _file_handler(config: Any) -> logging.Handler | None:
    """Open the rotating log file, or return None if LOG_DIR is unwritable."""
    log_file = config.log_dir / LOG_FILE
    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        if config.log_max_bytes > 0:
            return RotatingFileHandler(
                log_file,
                maxBytes=config.log_max_bytes,
                backupCount=config.log_backup_count,
                encoding="utf-8",
            )
        return TimedRotatingFileHandler(
            log_file, when="midnight", backupCount=config.log_backup_count, encoding="utf-8"
        )
    except OSError as e:
        print(f"Warning: cannot write logs to {config.log_dir} ({e}); logging to console only", file=sys.stderr)
        return None


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Install console and file handlers on the root logger.

    Args:
        config: Application configuration (LOG_* settings)
        verbose: Force DEBUG on the console

    Returns:
        True if the log file is being written, False for console only
    """
    json_output = config.log_format == "json"
    context_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO))
    console.setFormatter(JsonFormatter() if json_output else TextFormatter())
    console.addFilter(context_filter)
    root.addHandler(console)

    file_handler = _file_handler(config)
    if file_handler is not None:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter() if json_output else TextFormatter(include_date=True))
        file_handler.addFilter(context_filter)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return file_handler is not None
