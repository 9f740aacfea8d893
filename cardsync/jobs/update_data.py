"""
Run catalog and price updates on demand.

Applies the same cadence checks as the background scheduler unless --force
is given. Exits non-zero if any update fails.

Usage:
    python -m cardsync.jobs.update_data --force
    python -m cardsync.jobs.update_data --only catalog --reuse-cached
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import create_async_engine

from cardsync.config import VALID_PRICE_SOURCES, Settings, settings
from cardsync.db.database import build_session_factory, init_db
from cardsync.models.catalog import CycleStats
from cardsync.models.errors import SyncError
from cardsync.services.catalog_sync import build_cadences
from cardsync.services.scheduler import run_cadence

logger = logging.getLogger(__name__)

CADENCE_NAMES = ("price", "catalog")


async def run_update(
    config: Settings,
    *,
    force: bool = False,
    only: Sequence[str] | None = None,
    reuse_cached: bool = False,
) -> dict[str, CycleStats | None]:
    """
    Run the requested cadences once, in scheduler order.

    Args:
        config: Settings to run with (database, data dir, sources)
        force: Ignore cadence thresholds
        only: Cadence names to run. All cadences if None.
        reuse_cached: Keep downloaded files and reuse them if present

    Returns:
        Dict mapping cadence name to its stats (None if skipped)

    Raises:
        SyncError: If any cycle failed. A failed cadence does not stop the
            ones after it; the error is raised once all of them have run.
    """
    engine = create_async_engine(config.database_url, echo=config.debug, pool_pre_ping=True)
    session_factory = build_session_factory(engine)
    results: dict[str, CycleStats | None] = {}
    failed: list[str] = []

    try:
        await init_db(engine)
        async with httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        ) as client:
            cadences = build_cadences(
                session_factory, config, client=client, reuse_cached=reuse_cached
            )
            for cadence in cadences:
                if only and cadence.name not in only:
                    continue
                try:
                    results[cadence.name] = await run_cadence(
                        cadence, session_factory, force=force
                    )
                except SyncError as e:
                    logger.error("%s update failed: %s", cadence.name, e, exc_info=True)
                    failed.append(cadence.name)
    finally:
        await engine.dispose()

    if failed:
        raise SyncError(f"Update failed for: {', '.join(failed)}")
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Update card catalog and prices")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the last update is recent",
    )
    parser.add_argument(
        "--only",
        nargs="+",
        choices=CADENCE_NAMES,
        help="Only run these updates (default: price and catalog)",
    )
    parser.add_argument(
        "--reuse-cached",
        action="store_true",
        help="Reuse a previously downloaded file and keep it afterwards",
    )
    parser.add_argument(
        "--price-source",
        choices=sorted(VALID_PRICE_SOURCES),
        default=None,
        help=f"Price feed to use (default: {settings.price_source})",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help=f"Directory for downloaded files (default: {settings.data_dir})",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.price_source:
        overrides["price_source"] = args.price_source
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    config = settings.model_copy(update=overrides)

    try:
        results = asyncio.run(
            run_update(
                config,
                force=args.force,
                only=args.only,
                reuse_cached=args.reuse_cached,
            )
        )
    except Exception as e:
        logger.error("Data update failed: %s", e, exc_info=True)
        sys.exit(1)

    for name, stats in results.items():
        if stats is None:
            logger.info("%s: skipped (recently updated)", name)
        else:
            logger.info("%s: %s", name, stats.as_log_dict())


if __name__ == "__main__":
    main()
