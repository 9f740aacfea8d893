"""
Backfill columns of existing catalog rows.

Catalog updates never touch rows that already exist, so fields added or
corrected upstream after a card was first imported (localized names,
colors) have to be backfilled explicitly.

Usage:
    python -m cardsync.jobs.backfill name_localized
    python -m cardsync.jobs.backfill colors --reuse-cached
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import httpx
from sqlalchemy.ext.asyncio import create_async_engine

from cardsync.config import Settings, settings
from cardsync.db.database import build_session_factory
from cardsync.db.operations import BACKFILL_COLUMNS
from cardsync.models.catalog import CycleStats
from cardsync.services.catalog_sync import run_backfill_cycle

logger = logging.getLogger(__name__)


async def run_backfill(
    config: Settings,
    column: str,
    *,
    language: str | None = None,
    reuse_cached: bool = False,
) -> CycleStats:
    """Backfill one column using a fresh engine built from config."""
    engine = create_async_engine(config.database_url, echo=config.debug, pool_pre_ping=True)
    try:
        async with httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        ) as client:
            return await run_backfill_cycle(
                build_session_factory(engine),
                column,
                client=client,
                source_url=config.catalog_source_url,
                data_dir=config.data_dir,
                batch_size=config.batch_size,
                language=language or config.localized_language,
                reuse_cached=reuse_cached,
            )
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Backfill a column of existing catalog rows")
    parser.add_argument("column", choices=sorted(BACKFILL_COLUMNS), help="Column to backfill")
    parser.add_argument(
        "--language",
        default=None,
        help=f"Foreign name language (default: {settings.localized_language})",
    )
    parser.add_argument(
        "--reuse-cached",
        action="store_true",
        help="Reuse a previously downloaded AllPrintings file and keep it afterwards",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        stats = asyncio.run(
            run_backfill(
                settings,
                args.column,
                language=args.language,
                reuse_cached=args.reuse_cached,
            )
        )
    except Exception as e:
        logger.error("Backfill of %s failed: %s", args.column, e, exc_info=True)
        sys.exit(1)

    logger.info("Backfilled %s: %s", args.column, stats.as_log_dict())


if __name__ == "__main__":
    main()
