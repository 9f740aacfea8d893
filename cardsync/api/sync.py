"""
Sync status endpoint.

Reports when each cadence last completed, when it is next due, and whether
the background scheduler is running.
"""

from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cardsync.config import CATALOG_CHECKPOINT_KEY, PRICE_CHECKPOINT_KEY, settings
from cardsync.db.database import get_session
from cardsync.db.operations import count_cards, list_checkpoints

router = APIRouter(prefix="/sync", tags=["sync"])


class CadenceStatusResponse(BaseModel):
    """Checkpoint state for one cadence."""

    name: str
    last_run: datetime | None
    next_due: datetime | None
    interval_hours: int


class SyncStatusResponse(BaseModel):
    """Overall sync state."""

    scheduler_running: bool
    card_count: int
    cadences: list[CadenceStatusResponse]


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SyncStatusResponse:
    """Current checkpoints and catalog size."""
    intervals = {
        "price": (PRICE_CHECKPOINT_KEY, settings.price_interval_hours),
        "catalog": (CATALOG_CHECKPOINT_KEY, settings.catalog_interval_hours),
    }
    checkpoints = await list_checkpoints(session, [key for key, _ in intervals.values()])

    cadences = []
    for name, (key, hours) in intervals.items():
        last_run = checkpoints[key]
        cadences.append(
            CadenceStatusResponse(
                name=name,
                last_run=last_run,
                next_due=last_run + timedelta(hours=hours) if last_run else None,
                interval_hours=hours,
            )
        )

    scheduler = getattr(request.app.state, "scheduler", None)
    return SyncStatusResponse(
        scheduler_running=bool(scheduler and scheduler.running),
        card_count=await count_cards(session),
        cadences=cadences,
    )
