from cardsync.models.catalog import (
    PRICE_FIELDS,
    CatalogRecord,
    CycleStats,
    FieldUpdate,
    PriceUpdate,
)
from cardsync.models.db import Base, CardDB, SystemSettingDB
from cardsync.models.errors import DecodeError, FetchError, PersistenceError, SyncError

__all__ = [
    "PRICE_FIELDS",
    "Base",
    "CardDB",
    "CatalogRecord",
    "CycleStats",
    "DecodeError",
    "FetchError",
    "FieldUpdate",
    "PersistenceError",
    "PriceUpdate",
    "SyncError",
    "SystemSettingDB",
]
