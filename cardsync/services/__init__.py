"""
cardsync services.

Bulk download, record transformation, batched persistence and scheduling
for the card catalog and price sync.
"""

from cardsync.services.batch_writer import BatchWriter
from cardsync.services.bulk_fetcher import cleanup_file, download_file, resolve_scryfall_bulk_url
from cardsync.services.catalog_sync import (
    build_cadences,
    run_backfill_cycle,
    run_catalog_cycle,
    run_consistency_sweep,
    run_price_cycle,
)
from cardsync.services.record_transformer import (
    is_digital_card,
    is_digital_set,
    iter_catalog_records,
    iter_price_updates,
    latest_price,
    localized_name,
    transform_card,
    transform_mtgjson_price,
    transform_scryfall_price,
)
from cardsync.services.scheduler import (
    Cadence,
    CadenceResult,
    CadenceStatus,
    DataUpdateScheduler,
    run_cadence,
    should_run,
)

__all__ = [
    "BatchWriter",
    "Cadence",
    "CadenceResult",
    "CadenceStatus",
    "DataUpdateScheduler",
    "build_cadences",
    "cleanup_file",
    "download_file",
    "is_digital_card",
    "is_digital_set",
    "iter_catalog_records",
    "iter_price_updates",
    "latest_price",
    "localized_name",
    "resolve_scryfall_bulk_url",
    "run_backfill_cycle",
    "run_cadence",
    "run_catalog_cycle",
    "run_consistency_sweep",
    "run_price_cycle",
    "should_run",
    "transform_card",
    "transform_mtgjson_price",
    "transform_scryfall_price",
]
