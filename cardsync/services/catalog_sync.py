"""
Catalog and price sync cycles.

A cycle downloads a bulk file, streams it through the decoder and
transformer, and writes it in batches:

- catalog: MTGJSON AllPrintings, insert-only (known uuids are skipped),
  followed by a sweep of digital-only rows
- price: MTGJSON AllPricesToday (or Scryfall default cards), updating the
  price columns of existing rows
- backfill: AllPrintings again, overwriting one column of existing rows

The downloaded file is removed when the cycle ends, whether it succeeded
or not, unless the caller asked to reuse a cached copy.
"""

import logging
from collections.abc import Sequence
from datetime import timedelta
from functools import partial
from pathlib import Path

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardsync.config import (
    CATALOG_CHECKPOINT_KEY,
    PRICE_CHECKPOINT_KEY,
    VALID_PRICE_SOURCES,
    Settings,
    settings,
)
from cardsync.db.operations import (
    apply_field_updates,
    apply_price_updates,
    delete_digital_only_cards,
    insert_cards_skip_duplicates,
)
from cardsync.models.catalog import CycleStats, FieldUpdate
from cardsync.models.errors import PersistenceError
from cardsync.parsers.mtgjson import iter_catalog_sets, iter_price_entries
from cardsync.parsers.scryfall import iter_scryfall_cards
from cardsync.services.batch_writer import BatchWriter
from cardsync.services.bulk_fetcher import cleanup_file, download_file, resolve_scryfall_bulk_url
from cardsync.services.record_transformer import (
    iter_catalog_records,
    iter_field_values,
    iter_price_updates,
    localized_name,
    mtgjson_price_entry,
    transform_scryfall_price,
)
from cardsync.services.scheduler import Cadence

logger = logging.getLogger(__name__)

CATALOG_FILE_NAME = "AllPrintings.json.gz"
MTGJSON_PRICES_FILE_NAME = "AllPricesToday.json.gz"
SCRYFALL_PRICES_FILE_NAME = "scryfall-default-cards.json"

SessionFactory = async_sessionmaker[AsyncSession]


async def _fetch_or_reuse(
    url: str, path: Path, client: httpx.AsyncClient | None, reuse_cached: bool
) -> None:
    if reuse_cached and path.exists():
        logger.info("Using cached %s", path)
        return
    await download_file(url, path, client=client)


async def run_consistency_sweep(session_factory: SessionFactory) -> int:
    """
    Delete catalog rows that match the digital-only rule.

    Catches rows inserted under older filtering rules. Safe to repeat.

    Raises:
        PersistenceError: If the delete fails
    """
    try:
        async with session_factory() as session, session.begin():
            removed = await delete_digital_only_cards(session)
    except SQLAlchemyError as e:
        raise PersistenceError(f"Digital-only cleanup failed: {e}") from e

    logger.info("Consistency sweep removed %d digital-only cards", removed)
    return removed


async def run_catalog_cycle(
    session_factory: SessionFactory,
    *,
    client: httpx.AsyncClient | None = None,
    source_url: str | None = None,
    data_dir: Path | None = None,
    batch_size: int | None = None,
    language: str | None = None,
    reuse_cached: bool = False,
) -> CycleStats:
    """
    Import new printings from MTGJSON AllPrintings.

    Raises:
        FetchError: If the download fails
        DecodeError: If the file is corrupt
        PersistenceError: If a batch or the sweep fails
    """
    path = (data_dir or settings.data_dir) / CATALOG_FILE_NAME
    stats = CycleStats()
    try:
        await _fetch_or_reuse(
            source_url or settings.catalog_source_url, path, client, reuse_cached
        )

        logger.info("Starting streaming card import from %s", path)
        records = iter_catalog_records(iter_catalog_sets(path), stats, language=language)
        writer = BatchWriter(session_factory, insert_cards_skip_duplicates, batch_size)
        await writer.write(records, stats)

        stats.swept = await run_consistency_sweep(session_factory)
    finally:
        if not reuse_cached:
            cleanup_file(path)

    logger.info("Card import finished: %s", stats.as_log_dict())
    return stats


async def run_price_cycle(
    session_factory: SessionFactory,
    *,
    client: httpx.AsyncClient | None = None,
    source: str | None = None,
    source_url: str | None = None,
    data_dir: Path | None = None,
    batch_size: int | None = None,
    reuse_cached: bool = False,
) -> CycleStats:
    """
    Refresh the price columns of existing catalog rows.

    Args:
        source: "mtgjson" (keyed by uuid) or "scryfall" (keyed by scryfall_id)

    Raises:
        ValueError: If source is unknown
        FetchError: If the download fails
        DecodeError: If the file is corrupt
        PersistenceError: If a batch fails
    """
    source = source or settings.price_source
    if source not in VALID_PRICE_SOURCES:
        raise ValueError(
            f"Unknown price source: {source}. Must be one of: {sorted(VALID_PRICE_SOURCES)}"
        )

    data_dir = data_dir or settings.data_dir
    if source == "scryfall":
        path = data_dir / SCRYFALL_PRICES_FILE_NAME
    else:
        path = data_dir / MTGJSON_PRICES_FILE_NAME

    stats = CycleStats()
    try:
        if source == "scryfall":
            if source_url is None and not (reuse_cached and path.exists()):
                source_url = await resolve_scryfall_bulk_url(client=client)
            await _fetch_or_reuse(source_url or "", path, client, reuse_cached)
            updates = iter_price_updates(
                iter_scryfall_cards(path), stats, transform_scryfall_price
            )
        else:
            await _fetch_or_reuse(
                source_url or settings.price_source_url, path, client, reuse_cached
            )
            updates = iter_price_updates(iter_price_entries(path), stats, mtgjson_price_entry)

        logger.info("Starting streaming price update from %s", path)
        writer = BatchWriter(session_factory, apply_price_updates, batch_size)
        await writer.write(updates, stats)
    finally:
        if not reuse_cached:
            cleanup_file(path)

    logger.info("Price update finished: %s", stats.as_log_dict())
    return stats


async def run_backfill_cycle(
    session_factory: SessionFactory,
    column: str,
    *,
    client: httpx.AsyncClient | None = None,
    source_url: str | None = None,
    data_dir: Path | None = None,
    batch_size: int | None = None,
    language: str | None = None,
    reuse_cached: bool = False,
) -> CycleStats:
    """
    Overwrite one column of existing rows from AllPrintings.

    Supported columns are "name_localized" and "colors". Cards without a
    translation in the configured language are left as they are.
    """
    if column == "name_localized":
        lang = language or settings.localized_language

        def extract(card: dict) -> str | None:
            return localized_name(card, lang)

    elif column == "colors":

        def extract(card: dict) -> list[str] | None:
            return list(card.get("colors") or [])

    else:
        raise ValueError(f"Column cannot be backfilled: {column}")

    async def persist(session: AsyncSession, batch: Sequence[FieldUpdate]) -> int:
        return await apply_field_updates(session, column, batch)

    path = (data_dir or settings.data_dir) / CATALOG_FILE_NAME
    stats = CycleStats()
    try:
        await _fetch_or_reuse(
            source_url or settings.catalog_source_url, path, client, reuse_cached
        )

        logger.info("Starting %s backfill from %s", column, path)
        updates = (
            FieldUpdate(uuid, value)
            for uuid, value in iter_field_values(iter_catalog_sets(path), extract)
        )
        writer: BatchWriter[FieldUpdate] = BatchWriter(session_factory, persist, batch_size)
        await writer.write(updates, stats)
    finally:
        if not reuse_cached:
            cleanup_file(path)

    logger.info("Backfill of %s finished: %s", column, stats.as_log_dict())
    return stats


def build_cadences(
    session_factory: SessionFactory,
    config: Settings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    reuse_cached: bool = False,
) -> list[Cadence]:
    """
    Price and catalog cadences, in the order the scheduler runs them.

    reuse_cached keeps downloaded files on disk and reuses them on the next
    run; only the manual CLI sets it.
    """
    config = config or settings
    price = Cadence(
        name="price",
        checkpoint_key=PRICE_CHECKPOINT_KEY,
        threshold=timedelta(hours=config.price_interval_hours),
        run=partial(
            run_price_cycle,
            session_factory,
            client=client,
            source=config.price_source,
            source_url=config.price_source_url if config.price_source == "mtgjson" else None,
            data_dir=config.data_dir,
            batch_size=config.batch_size,
            reuse_cached=reuse_cached,
        ),
    )
    catalog = Cadence(
        name="catalog",
        checkpoint_key=CATALOG_CHECKPOINT_KEY,
        threshold=timedelta(hours=config.catalog_interval_hours),
        run=partial(
            run_catalog_cycle,
            session_factory,
            client=client,
            source_url=config.catalog_source_url,
            data_dir=config.data_dir,
            batch_size=config.batch_size,
            language=config.localized_language,
            reuse_cached=reuse_cached,
        ),
    )
    return [price, catalog]
