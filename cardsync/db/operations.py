"""
Database operations for the card catalog.

Provides async functions for the bulk writes the sync pipeline performs
(skip-duplicate inserts, per-row price updates, digital-only cleanup) and
for reading and writing the cadence checkpoints.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from cardsync.config import DIGITAL_NAME_PREFIX, DIGITAL_SET_NAME_MARKERS
from cardsync.models.catalog import CatalogRecord, FieldUpdate, PriceUpdate
from cardsync.models.db import CardDB, SystemSettingDB

logger = logging.getLogger(__name__)

PRICE_KEY_COLUMNS = {
    "uuid": CardDB.uuid,
    "scryfall_id": CardDB.scryfall_id,
}

BACKFILL_COLUMNS = frozenset({"name_localized", "colors"})

# --- Catalog Operations ---


async def insert_cards_skip_duplicates(
    session: AsyncSession, records: Sequence[CatalogRecord]
) -> int:
    """
    Bulk insert catalog records, ignoring uuids that already exist.

    Existing rows are left untouched. Returns the number of rows inserted.
    """
    if not records:
        return 0

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(CardDB.__table__)
    elif dialect == "sqlite":
        stmt = sqlite.insert(CardDB.__table__)
    else:
        raise ValueError(f"Unsupported database dialect for skip-duplicate insert: {dialect}")

    stmt = stmt.values([record.to_row() for record in records]).on_conflict_do_nothing(
        index_elements=["uuid"]
    )
    result = await session.execute(stmt)
    # rowcount is available on INSERT results; type stubs incomplete for async
    return max(int(result.rowcount), 0)  # type: ignore[attr-defined]


async def apply_price_updates(session: AsyncSession, updates: Sequence[PriceUpdate]) -> int:
    """
    Apply price updates row by row.

    Each update only sets the price columns it carries a value for, so a
    missing source price never clears a stored one. Returns the number of
    rows matched.
    """
    matched = 0
    for price in updates:
        values = price.present_prices()
        if not values:
            continue

        key_column = PRICE_KEY_COLUMNS.get(price.key_field)
        if key_column is None:
            raise ValueError(f"Unknown price key field: {price.key_field}")

        result = await session.execute(
            update(CardDB)
            .where(key_column == price.key)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        matched += int(result.rowcount)  # type: ignore[attr-defined]

    return matched


async def apply_field_updates(
    session: AsyncSession, column: str, updates: Sequence[FieldUpdate]
) -> int:
    """
    Overwrite one column for existing cards, keyed by uuid.

    Used by the backfill job, since catalog refreshes never update rows
    that already exist.
    """
    if column not in BACKFILL_COLUMNS:
        raise ValueError(f"Column cannot be backfilled: {column}")

    matched = 0
    for item in updates:
        result = await session.execute(
            update(CardDB)
            .where(CardDB.uuid == item.uuid)
            .values({column: item.value})
            .execution_options(synchronize_session=False)
        )
        matched += int(result.rowcount)  # type: ignore[attr-defined]

    return matched


def digital_only_condition() -> ColumnElement[bool]:
    """
    SQL form of the digital-only exclusion rule.

    Matches rows flagged online-only, rows whose set name contains a
    digital product marker, and rows whose name has the rebalanced prefix.
    """
    set_name = func.lower(CardDB.set_name)
    prefix_len = len(DIGITAL_NAME_PREFIX)
    return or_(
        CardDB.is_online_only.is_(True),
        *(set_name.contains(marker) for marker in DIGITAL_SET_NAME_MARKERS),
        func.substr(CardDB.name, 1, prefix_len) == DIGITAL_NAME_PREFIX,
    )


async def delete_digital_only_cards(session: AsyncSession) -> int:
    """
    Delete every catalog row matching the digital-only rule.

    Returns the number of deleted records.
    """
    result = await session.execute(
        delete(CardDB)
        .where(digital_only_condition())
        .execution_options(synchronize_session=False)
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


async def count_cards(session: AsyncSession) -> int:
    """Total number of catalog rows."""
    result = await session.execute(select(func.count()).select_from(CardDB))
    return int(result.scalar_one())


async def get_card_by_uuid(session: AsyncSession, uuid: str) -> CardDB | None:
    """Get a catalog row by its source identifier."""
    result = await session.execute(select(CardDB).where(CardDB.uuid == uuid))
    return result.scalar_one_or_none()


# --- Checkpoint Operations ---


def _parse_timestamp(key: str, value: str) -> datetime | None:
    """
    Parse a stored checkpoint; naive timestamps are taken as UTC.

    An unparseable value counts as "never run" so the cadence can recover.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring unparseable checkpoint %s=%r", key, value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


async def get_checkpoint(session: AsyncSession, key: str) -> datetime | None:
    """
    Get the last successful run time for a cadence.

    Returns None if the cadence has never completed.
    """
    result = await session.execute(
        select(SystemSettingDB.value).where(SystemSettingDB.key == key)
    )
    value = result.scalar_one_or_none()
    if not value:
        return None
    return _parse_timestamp(key, value)


async def set_checkpoint(session: AsyncSession, key: str, when: datetime) -> SystemSettingDB:
    """
    Insert or overwrite the checkpoint for a cadence.

    Overwrites the stored value if the key exists, otherwise creates it.
    """
    existing = await session.get(SystemSettingDB, key)
    if existing:
        existing.value = when.isoformat()
        await session.flush()
        return existing

    setting = SystemSettingDB(key=key, value=when.isoformat())
    session.add(setting)
    await session.flush()
    return setting


async def list_checkpoints(
    session: AsyncSession, keys: Sequence[str]
) -> dict[str, datetime | None]:
    """Get checkpoints for several cadences; missing ones map to None."""
    result = await session.execute(
        select(SystemSettingDB.key, SystemSettingDB.value).where(SystemSettingDB.key.in_(keys))
    )
    stored = {key: _parse_timestamp(key, value) for key, value in result.all() if value}
    return {key: stored.get(key) for key in keys}
