from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI

from cardsync.api import health_router, sync_router
from cardsync.config import settings
from cardsync.db.database import async_session_factory, init_db
from cardsync.services.catalog_sync import build_cadences
from cardsync.services.scheduler import DataUpdateScheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()

    scheduler = DataUpdateScheduler(build_cadences(async_session_factory), async_session_factory)
    app.state.scheduler = scheduler
    if settings.scheduler_enabled:
        scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("cardsync"),
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(sync_router)
