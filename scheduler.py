"""Scheduler loop: evaluate every active configuration once per tick.

Each tick lists the active configurations, asks the trigger evaluator
whether each one is due, and dispatches a unit of work for every due
configuration:

    aggregate feeds -> distill (select, extract, synthesize) -> send -> record

Lifecycle:
    STOPPED --start()--> RUNNING --stop()--> STOPPED
    Both self-transitions are no-ops. stop() halts future ticks only;
    units already dispatched run to completion.

Units run as tracked asyncio tasks behind a semaphore of MAX_WORKERS, so
excess due configurations wait for a slot. A configuration whose unit is
still in flight is not dispatched again. Every unit has one deadline
(RUN_TIMEOUT_SECONDS) covering feed fetches and generation calls.

A failure inside one unit is logged and ends that unit; it never reaches
sibling units or the loop.
"""

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Protocol

from aggregator import Fetcher, aggregate
from config import Config
from delivery import Sender, deliver_and_record
from errors import DossierError
from models import Configuration, DeliveryRecord, Item
from observability.logging import new_run_id, run_context
from observability.tracing import trace_operation
from pipeline import DistillResult
from trigger import is_due

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Repository(Protocol):
    def list_active(self) -> list[Configuration]: ...

    def get_last_delivery(self, config_id: int) -> DeliveryRecord | None: ...

    def record_delivery(self, record: DeliveryRecord) -> int: ...


class Distiller(Protocol):
    async def run(self, dossier: Configuration, items: list[Item]) -> DistillResult: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Periodic trigger evaluation and bounded dispatch of dossier runs.

    Example:
        >>> scheduler = Scheduler(config, db, fetcher, pipeline, SmtpSender(config))
        >>> scheduler.start()
        >>> ...
        >>> scheduler.stop()
        >>> await scheduler.wait_idle()
    """

    def __init__(
        self,
        config: Config,
        repository: Repository,
        fetcher: Fetcher,
        pipeline: Distiller,
        sender: Sender,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the scheduler.

        Args:
            config: Application configuration (tick, workers, timeouts)
            repository: Configuration repository and delivery history
            fetcher: Feed collaborator
            pipeline: Distillation pipeline
            sender: Delivery collaborator
            clock: Returns the current instant (defaults to UTC now)
        """
        self.config = config
        self.repository = repository
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.sender = sender
        self.clock = clock or _utcnow

        self._lock = threading.Lock()
        self._state = SchedulerState.STOPPED
        self._loop_task: asyncio.Task | None = None
        self._semaphore = asyncio.Semaphore(config.max_workers)
        self._in_flight: set[int] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        return self.state is SchedulerState.RUNNING

    def start(self) -> None:
        """Start the tick loop. Must be called with a running event loop."""
        with self._lock:
            if self._state is SchedulerState.RUNNING:
                logger.info("Scheduler already running")
                return
            self._state = SchedulerState.RUNNING
            self._loop_task = asyncio.get_running_loop().create_task(self._loop(), name="dossier-scheduler")

        logger.info("Scheduler started | tick=%ds workers=%d", self.config.tick_seconds, self.config.max_workers)

    def stop(self) -> None:
        """Stop future ticks. Units already dispatched keep running."""
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            task, self._loop_task = self._loop_task, None

        if task is not None:
            task.cancel()
        logger.info("Scheduler stopped | in_flight=%d", len(self._tasks))

    def _seconds_until_tick(self) -> float:
        interval = self.config.tick_seconds
        return interval - (time.time() % interval)

    async def _loop(self) -> None:
        ticks = 0
        try:
            while self.is_running():
                await asyncio.sleep(self._seconds_until_tick())
                if not self.is_running():
                    break
                ticks += 1
                try:
                    await self.tick()
                except Exception as e:
                    logger.error("Tick failed | tick=%d error=%s", ticks, e, exc_info=True)
        except asyncio.CancelledError:
            logger.debug("Scheduler loop cancelled | ticks=%d", ticks)
            raise

    async def tick(self, now: datetime | None = None) -> list[Configuration]:
        """Evaluate all active configurations and dispatch the due ones.

        Args:
            now: Evaluation instant (defaults to the scheduler clock)

        Returns:
            Configurations dispatched by this tick
        """
        now = now or self.clock()

        try:
            configs = self.repository.list_active()
        except Exception as e:
            logger.error("Listing active configurations failed | error=%s", e)
            return []

        dispatched = []
        for config in configs:
            if config.id in self._in_flight:
                logger.info("Run still in flight, skipping | config=%s", config.id)
                continue
            if is_due(config, now, self.repository, self.config.default_timezone):
                logger.info("Dossier due | config=%s title=%s", config.id, config.title)
                self._dispatch(config)
                dispatched.append(config)

        logger.debug("Tick | at=%s active=%d due=%d", now.strftime("%H:%M:%S"), len(configs), len(dispatched))
        return dispatched

    def _dispatch(self, config: Configuration) -> asyncio.Task:
        self._in_flight.add(config.id)
        task = asyncio.create_task(self._run_bounded(config), name=f"dossier-{config.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_bounded(self, config: Configuration) -> DeliveryRecord | None:
        try:
            async with self._semaphore:
                return await self._run_unit(config)
        finally:
            self._in_flight.discard(config.id)

    async def run_now(self, config: Configuration) -> DeliveryRecord | None:
        """Run one configuration immediately, bypassing the trigger.

        Returns:
            The delivery record, or None if the run failed or was already in flight
        """
        if config.id in self._in_flight:
            logger.warning("Run already in flight | config=%s", config.id)
            return None
        self._in_flight.add(config.id)
        return await self._run_bounded(config)

    async def wait_idle(self) -> None:
        """Wait until every dispatched unit has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _execute(self, config: Configuration) -> DeliveryRecord:
        items, _ = await aggregate(config, self.fetcher)
        result = await self.pipeline.run(config, items)
        return await deliver_and_record(
            config,
            result.text,
            items,
            self.sender,
            self.repository,
            now=self.clock(),
        )

    async def _run_unit(self, config: Configuration) -> DeliveryRecord | None:
        """One isolated dossier run. Never raises except on cancellation."""
        with run_context(new_run_id(config.id), config_id=config.id):
            start = time.monotonic()
            logger.info("Run started | config=%s title=%s to=%s", config.id, config.title, config.email)

            try:
                with trace_operation("dossier.run", {"config_id": config.id}) as attrs:
                    async with asyncio.timeout(self.config.run_timeout_seconds):
                        record = await self._execute(config)
                    attrs["items"] = record.item_count
            except asyncio.CancelledError:
                logger.warning("Run cancelled | config=%s", config.id)
                raise
            except DossierError as e:
                logger.error("Run failed | config=%s error=%s type=%s", config.id, e, type(e).__name__)
                return None
            except TimeoutError:
                logger.error("Run timed out | config=%s timeout=%.0fs", config.id, self.config.run_timeout_seconds)
                return None
            except Exception as e:
                logger.error("Run crashed | config=%s error=%s type=%s", config.id, e, type(e).__name__, exc_info=True)
                return None

            logger.info(
                "Run complete | config=%s items=%d duration=%.1fs",
                config.id, record.item_count, time.monotonic() - start,
            )
            return record
