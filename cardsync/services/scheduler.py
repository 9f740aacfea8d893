"""
Cadence scheduler for catalog and price refreshes.

Each cadence (weekly catalog, daily price) is gated by a checkpoint stored
in system settings. The scheduler checks both cadences shortly after
startup and then every hour. A cadence only runs when it is forced, has
never completed, or its checkpoint is older than its threshold.

Failures are cycle-scoped: the checkpoint is only written after a
successful cycle, so the next eligible tick retries the whole cycle.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardsync.config import settings
from cardsync.db.operations import get_checkpoint, set_checkpoint
from cardsync.models.catalog import CycleStats
from cardsync.models.errors import PersistenceError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Cadence:
    """
    An independently scheduled refresh.

    Attributes:
        name: Label used in logs ("catalog", "price")
        checkpoint_key: System setting key holding the last success time
        threshold: Minimum age of the checkpoint before running again
        run: Coroutine function performing one full cycle
    """

    name: str
    checkpoint_key: str
    threshold: timedelta
    run: Callable[[], Awaitable[CycleStats]]


class CadenceStatus(str, Enum):
    """Outcome of one cadence within a scheduler tick."""

    RAN = "ran"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CadenceResult:
    name: str
    status: CadenceStatus
    stats: CycleStats | None = None
    error: str | None = None


def next_tick(previous: float, interval: float, now: float) -> float:
    """
    Next tick on the fixed grid anchored at previous.

    Ticks stay on the grid regardless of how long a run took. Ticks that were
    missed while a run was in progress are skipped rather than replayed.
    """
    if interval <= 0:
        return now
    tick = previous + interval
    if tick <= now:
        tick += ((now - tick) // interval + 1) * interval
    return tick


def should_run(
    last_run: datetime | None,
    threshold: timedelta,
    now: datetime,
    force: bool = False,
) -> bool:
    """
    Decide whether a cadence is due.

    Due when forced, when it has never run, or when the last successful
    run is at least threshold old.
    """
    if force or last_run is None:
        return True
    return now - last_run >= threshold


async def read_checkpoint(
    session_factory: async_sessionmaker[AsyncSession], key: str
) -> datetime | None:
    """
    Read a cadence checkpoint.

    A missing or unreadable settings table is treated as "never run".
    """
    try:
        async with session_factory() as session:
            return await get_checkpoint(session, key)
    except SQLAlchemyError as e:
        logger.warning("Could not read checkpoint %s, treating as never run: %s", key, e)
        return None


async def write_checkpoint(
    session_factory: async_sessionmaker[AsyncSession], key: str, when: datetime
) -> None:
    """
    Persist a cadence checkpoint.

    Raises:
        PersistenceError: If the checkpoint cannot be stored
    """
    try:
        async with session_factory() as session, session.begin():
            await set_checkpoint(session, key, when)
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not store checkpoint {key}: {e}") from e


async def run_cadence(
    cadence: Cadence,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    force: bool = False,
    now: datetime | None = None,
) -> CycleStats | None:
    """
    Run one cadence if it is due.

    Args:
        cadence: Cadence to evaluate
        session_factory: Factory for checkpoint reads and writes
        force: Ignore the threshold
        now: Current time. Defaults to the wall clock.

    Returns:
        Cycle stats, or None if the cadence was skipped.

    Raises:
        SyncError: If the cycle fails; the checkpoint is left untouched
    """
    started = now or utc_now()
    last_run = await read_checkpoint(session_factory, cadence.checkpoint_key)

    if not should_run(last_run, cadence.threshold, started, force):
        logger.info(
            "Skipping %s update, last run %s is within %s",
            cadence.name,
            last_run.isoformat() if last_run else "never",
            cadence.threshold,
        )
        return None

    logger.info("Starting %s update (force=%s, last run %s)", cadence.name, force, last_run)
    stats = await cadence.run()
    await write_checkpoint(session_factory, cadence.checkpoint_key, started)

    logger.info("%s update complete: %s", cadence.name.capitalize(), stats.as_log_dict())
    return stats


class DataUpdateScheduler:
    """
    Runs cadences once after a startup delay, then on a fixed interval.

    Cadences always run one after another, never concurrently, and a
    failure in one does not stop the others or later ticks.
    """

    def __init__(
        self,
        cadences: Sequence[Cadence],
        session_factory: async_sessionmaker[AsyncSession],
        *,
        startup_delay: float | None = None,
        interval: float | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.cadences = list(cadences)
        self.session_factory = session_factory
        self.startup_delay = (
            settings.scheduler_startup_delay_seconds if startup_delay is None else startup_delay
        )
        self.interval = settings.scheduler_tick_seconds if interval is None else interval
        self.clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, force: bool = False) -> list[CadenceResult]:
        """Evaluate every cadence in order, isolating failures."""
        results: list[CadenceResult] = []
        async with self._lock:
            for cadence in self.cadences:
                try:
                    stats = await run_cadence(
                        cadence, self.session_factory, force=force, now=self.clock()
                    )
                except Exception as e:
                    logger.error("Scheduled %s update failed: %s", cadence.name, e, exc_info=True)
                    results.append(CadenceResult(cadence.name, CadenceStatus.FAILED, error=str(e)))
                    continue

                status = CadenceStatus.SKIPPED if stats is None else CadenceStatus.RAN
                results.append(CadenceResult(cadence.name, status, stats=stats))
        return results

    def start(self) -> asyncio.Task[None]:
        """Start the background loop. Calling start twice is a no-op."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="data-update-scheduler")
            logger.info(
                "Data update scheduler started: first run in %ss, then every %ss",
                self.startup_delay,
                self.interval,
            )
        return self._task

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Data update scheduler stopped")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(self.startup_delay)
        tick = loop.time()
        while True:
            await self.run_once()
            tick = next_tick(tick, self.interval, loop.time())
            await asyncio.sleep(max(0.0, tick - loop.time()))
