from cardsync.api.health import router as health_router
from cardsync.api.sync import router as sync_router

__all__ = [
    "health_router",
    "sync_router",
]
