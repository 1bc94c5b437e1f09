#!/usr/bin/env python3
"""Dossier: scheduled, styled digests of your feeds.

This CLI tool runs the dossier scheduler, which turns each configuration's
feeds into a single styled summary delivered by e-mail on a daily, weekly
or monthly schedule.

Commands:
    serve       Run the scheduler until interrupted
    run         Generate and send one dossier now (bypasses the schedule)
    preview     Generate one dossier and print it without sending
    due         Show which active configurations are due at a given instant
    add         Create a dossier configuration
    styles      List available writing styles
    history     Show recent deliveries
    status      Show configuration and database statistics
    summarize   Summarize a single article (URL or text)
    smtp-test   Check the SMTP connection

Examples:
    python main.py serve
    python main.py add --email me@example.com --feed https://simonwillison.net/atom/everything/
    python main.py run --config-id 1
    python main.py preview --config-id 1 --output preview.html
    python main.py due --at 2024-01-01T08:00:00+00:00
    python main.py summarize --url https://example.com/post

Environment:
    DEFAULT_MODEL / PERMISSIVE_MODEL: Generation models (local Ollama by default)
    SMTP_HOST / SMTP_PORT / SMTP_USERNAME / SMTP_PASSWORD: Mail server
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path

from config import Config
from database import Database
from observability.logging import setup_logging
from observability.tracing import setup_tracing

logger = logging.getLogger(__name__)


def _build_scheduler(config: Config, db: Database, fetcher):
    """Wire the scheduler to its concrete collaborators."""
    from agents.generator import GenerationClient
    from notifications import SmtpSender
    from pipeline import DistillPipeline
    from scheduler import Scheduler

    pipeline = DistillPipeline(config, GenerationClient(config), db)
    return Scheduler(config, db, fetcher, pipeline, SmtpSender(config))


def _load_config_or_fail(db: Database, config_id: int):
    dossier = db.get_config(config_id)
    if dossier is None:
        print(f"Configuration {config_id} not found.", file=sys.stderr)
    return dossier


def cmd_serve(args: argparse.Namespace, config: Config) -> int:
    """Run the scheduler until SIGINT/SIGTERM.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    from feeds import FeedFetcher

    async def serve() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows: KeyboardInterrupt still ends asyncio.run

        with Database(config.db_path) as db:
            async with FeedFetcher(timeout=config.feed_timeout_seconds) as fetcher:
                scheduler = _build_scheduler(config, db, fetcher)
                scheduler.start()
                try:
                    await stop.wait()
                finally:
                    scheduler.stop()
                    logger.info("Waiting for in-flight runs to finish")
                    await scheduler.wait_idle()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    return 0


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Generate and send one dossier immediately."""
    from feeds import FeedFetcher

    async def run_once() -> bool:
        with Database(config.db_path) as db:
            dossier = _load_config_or_fail(db, args.config_id)
            if dossier is None:
                return False
            async with FeedFetcher(timeout=config.feed_timeout_seconds) as fetcher:
                record = await _build_scheduler(config, db, fetcher).run_now(dossier)
        if record is None:
            return False
        print(f"Dossier sent to {dossier.email} ({record.item_count} items).")
        return True

    return 0 if asyncio.run(run_once()) else 1


def cmd_preview(args: argparse.Namespace, config: Config) -> int:
    """Generate one dossier and print (or save) it without sending."""
    from agents.generator import GenerationClient
    from aggregator import aggregate
    from errors import DossierError
    from feeds import FeedFetcher
    from notifications import render_email
    from pipeline import DistillPipeline

    async def preview():
        with Database(config.db_path) as db:
            dossier = _load_config_or_fail(db, args.config_id)
            if dossier is None:
                return None
            async with FeedFetcher(timeout=config.feed_timeout_seconds) as fetcher:
                items, _ = await aggregate(dossier, fetcher)
            result = await DistillPipeline(config, GenerationClient(config), db).run(dossier, items)
        return dossier, items, result

    try:
        outcome = asyncio.run(preview())
    except DossierError as e:
        logger.error("Preview failed | error=%s type=%s", e, type(e).__name__)
        return 1
    if outcome is None:
        return 1

    dossier, items, result = outcome
    if args.output:
        html, _ = render_email(dossier, result.text, items)
        Path(args.output).write_text(html, encoding="utf-8")
        print(f"Preview written to {args.output}")
    else:
        print(result.text)

    print(f"\n--- {json.dumps(result.stats.to_dict())}", file=sys.stderr)
    return 0


def cmd_due(args: argparse.Namespace, config: Config) -> int:
    """Show which active configurations are due at an instant."""
    from trigger import is_due

    if args.at:
        try:
            now = datetime.fromisoformat(args.at)
        except ValueError:
            print(f"Invalid --at value: {args.at}", file=sys.stderr)
            return 2
    else:
        now = datetime.now(timezone.utc)

    with Database(config.db_path) as db:
        configs = db.list_active()
        if not configs:
            print("No active configurations.")
            return 0
        for dossier in configs:
            due = is_due(dossier, now, db, config.default_timezone)
            marker = "DUE" if due else "-"
            print(f"{marker:>4}  {dossier}")
    return 0


def cmd_add(args: argparse.Namespace, config: Config) -> int:
    """Create a dossier configuration."""
    from pydantic import ValidationError

    from models import Configuration

    try:
        dossier = Configuration(
            title=args.title or "",
            email=args.email,
            feed_urls=args.feed,
            max_item_count=args.max_items,
            frequency=args.frequency,
            delivery_time=args.time,
            timezone=args.timezone or config.default_timezone,
            style=args.style,
            language=args.language or config.default_language,
            special_instructions=args.instructions or "",
        )
        with Database(config.db_path) as db:
            saved = db.save_config(dossier)
    except (ValidationError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    print(f"Created {saved}")
    return 0


def cmd_styles(args: argparse.Namespace, config: Config) -> int:
    """List available writing styles."""
    with Database(config.db_path) as db:
        styles = db.list_styles()

    for style in styles:
        origin = "system" if style.is_system_default else "custom"
        print(f"{style.name:<16} [{origin}] {style.prompt[:80]}")
    return 0


def cmd_history(args: argparse.Namespace, config: Config) -> int:
    """Show recent deliveries."""
    with Database(config.db_path) as db:
        records = db.list_deliveries(config_id=args.config_id, limit=args.limit)

    if not records:
        print("No deliveries yet.")
        return 0

    print(f"\n=== Recent deliveries ({len(records)}) ===\n")
    for record in records:
        status = "sent" if record.success else "failed"
        print(f"#{record.id} config={record.config_id} {record.delivered_at:%Y-%m-%d %H:%M} UTC [{status}] items={record.item_count}")
        if record.summary:
            summary = record.summary.replace("\n", " ")
            if len(summary) > 200:
                summary = summary[:200] + "..."
            print(f"   {summary}")
        print()
    return 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration and database statistics.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    with Database(config.db_path) as db:
        db_stats = db.stats()

    last = db_stats["last_delivery"]
    status = {
        "config": {
            "default_model": config.default_model,
            "permissive_model": config.permissive_model,
            "selection_threshold": config.selection_threshold,
            "target_count": config.target_count,
            "tick_seconds": config.tick_seconds,
            "max_workers": config.max_workers,
            "run_timeout_seconds": config.run_timeout_seconds,
            "default_timezone": config.default_timezone,
            "smtp": f"{config.smtp_host}:{config.smtp_port}",
            "enable_logfire": config.enable_logfire,
        },
        "database": {
            "path": str(config.db_path),
            "configurations": db_stats["configurations"],
            "active": db_stats["active"],
            "deliveries": db_stats["deliveries"],
            "successful": db_stats["successful"],
            "last_delivery": last.isoformat() if last else None,
            "styles": db_stats["styles"],
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_summarize(args: argparse.Namespace, config: Config) -> int:
    """Summarize a single article from a URL or from given text."""
    from agents.generator import GenerationClient
    from agents.summarizer import Summarizer
    from errors import DossierError
    from models import Item

    if not args.url and not args.text:
        print("Provide --url or --text.", file=sys.stderr)
        return 2

    summarizer = Summarizer(config, GenerationClient(config))

    async def summarize() -> str:
        if args.url:
            return await summarizer.summarize_url(args.url)
        item = Item(
            title=args.title or "Untitled",
            content=args.text,
            published=datetime.now(timezone.utc),
        )
        return await summarizer.summarize_item(item)

    try:
        summary = asyncio.run(summarize())
    except DossierError as e:
        logger.error("Summarize failed | error=%s type=%s", e, type(e).__name__)
        return 1

    print(summary)
    return 0


def cmd_smtp_test(args: argparse.Namespace, config: Config) -> int:
    """Check that the SMTP server accepts a connection (and login)."""
    from notifications import SmtpSender

    ok = asyncio.run(SmtpSender(config).test_connection())
    print(f"SMTP {config.smtp_host}:{config.smtp_port}: {'OK' if ok else 'FAILED'}")
    return 0 if ok else 1


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Dossier: scheduled, styled digests of your feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command
    subparsers.add_parser("serve", help="Run the scheduler until interrupted")

    # run command
    run_parser = subparsers.add_parser("run", help="Generate and send one dossier now")
    run_parser.add_argument("--config-id", type=int, required=True, help="Configuration ID")

    # preview command
    preview_parser = subparsers.add_parser("preview", help="Generate a dossier without sending it")
    preview_parser.add_argument("--config-id", type=int, required=True, help="Configuration ID")
    preview_parser.add_argument("--output", help="Write the rendered HTML e-mail to this file")

    # due command
    due_parser = subparsers.add_parser("due", help="Show which configurations are due")
    due_parser.add_argument("--at", help="ISO-8601 instant to evaluate (default: now)")

    # add command
    add_parser = subparsers.add_parser("add", help="Create a dossier configuration")
    add_parser.add_argument("--title", help="Dossier title (used in the e-mail subject)")
    add_parser.add_argument("--email", required=True, help="Recipient address")
    add_parser.add_argument("--feed", action="append", required=True, help="Feed URL (repeatable)")
    add_parser.add_argument("--max-items", type=int, default=20, help="Maximum items per dossier (default: 20)")
    add_parser.add_argument(
        "--frequency",
        choices=["daily", "weekly", "monthly"],
        default="daily",
        help="Delivery frequency (default: daily)",
    )
    add_parser.add_argument("--time", default="08:00", help="Delivery time HH:MM (default: 08:00)")
    add_parser.add_argument("--timezone", help="IANA timezone (default: DEFAULT_TIMEZONE)")
    add_parser.add_argument("--style", default="professional", help="Writing style (default: professional)")
    add_parser.add_argument("--language", help="Output language (default: DEFAULT_LANGUAGE)")
    add_parser.add_argument("--instructions", help="Special instructions for the summary")

    # styles command
    subparsers.add_parser("styles", help="List writing styles")

    # history command
    history_parser = subparsers.add_parser("history", help="Show recent deliveries")
    history_parser.add_argument("--config-id", type=int, help="Only this configuration")
    history_parser.add_argument("--limit", type=int, default=20, help="Number of records (default: 20)")

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # summarize command
    summarize_parser = subparsers.add_parser("summarize", help="Summarize a single article")
    summarize_parser.add_argument("--url", help="Article URL to fetch and summarize")
    summarize_parser.add_argument("--title", help="Article title (with --text)")
    summarize_parser.add_argument("--text", help="Article text to summarize")

    # smtp-test command
    subparsers.add_parser("smtp-test", help="Check the SMTP connection")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    # Load and validate configuration
    config = Config.load()
    if error := config.validate():
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    setup_logging(config, verbose=args.verbose)
    setup_tracing(enabled=config.enable_logfire, service_name="dossier", token=config.logfire_token)

    commands = {
        "serve": cmd_serve,
        "run": cmd_run,
        "preview": cmd_preview,
        "due": cmd_due,
        "add": cmd_add,
        "styles": cmd_styles,
        "history": cmd_history,
        "status": cmd_status,
        "summarize": cmd_summarize,
        "smtp-test": cmd_smtp_test,
    }
    try:
        return commands[args.command](args, config)
    except Exception as e:
        logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
