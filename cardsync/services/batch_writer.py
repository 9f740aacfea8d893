"""
Batched persistence for streamed records.

The writer pulls records from a (lazy) iterator one at a time and commits
them in fixed-size batches. Nothing is pulled while a batch is being
written, so at most one batch of records is held in memory no matter how
large the source file is.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardsync.config import settings
from cardsync.models.catalog import CycleStats
from cardsync.models.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Writes one batch inside an open transaction, returns rows affected
PersistBatch = Callable[[AsyncSession, Sequence[T]], Awaitable[int]]


class BatchWriter(Generic[T]):
    """
    Commits streamed records in bounded batches.

    Each batch runs in its own session and transaction. A failed batch
    rolls back alone; batches committed before it stay committed.

    Counters:
        seen: records pulled from the source
        persisted: rows the persist function reported as written
        batches: transactions committed
        peak_buffered: largest number of records held at once
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        persist: PersistBatch[T],
        batch_size: int | None = None,
    ) -> None:
        if batch_size is None:
            batch_size = settings.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._session_factory = session_factory
        self._persist = persist
        self.batch_size = batch_size

    async def write(self, records: Iterable[T], stats: CycleStats | None = None) -> CycleStats:
        """
        Drain records into the store.

        The trailing partial batch is always flushed. On failure the source
        iterator is closed and the error propagates.

        Raises:
            PersistenceError: If a batch cannot be committed
            DecodeError: If the source iterator fails while being read
        """
        if stats is None:
            stats = CycleStats()

        iterator = iter(records)
        batch: list[T] = []
        try:
            for record in iterator:
                stats.seen += 1
                batch.append(record)
                stats.peak_buffered = max(stats.peak_buffered, len(batch))

                if len(batch) >= self.batch_size:
                    await self._flush(batch, stats)
                    batch = []

            if batch:
                await self._flush(batch, stats)
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

        return stats

    async def _flush(self, batch: list[T], stats: CycleStats) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                written = await self._persist(session, batch)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Batch {stats.batches + 1} of {len(batch)} records failed: {e}"
            ) from e

        stats.persisted += written
        stats.batches += 1
        logger.debug(
            "Committed batch %d (%d records, %d written, %d seen so far)",
            stats.batches,
            len(batch),
            written,
            stats.seen,
        )
