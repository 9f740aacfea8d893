from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardsync.db.database import build_session_factory
from cardsync.models.db import Base
from factories import make_card


@pytest.fixture
async def async_engine(tmp_path: Path):
    """Create a file-backed SQLite engine for testing."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return build_session_factory(async_engine)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def tst_catalog() -> dict[str, Any]:
    """AllPrintings document with one set holding a paper and a digital card."""
    return {
        "meta": {"date": "2026-10-01", "version": "5.2.2"},
        "data": {
            "TST": {
                "name": "Test Set",
                "code": "TST",
                "releaseDate": "2026-09-26",
                "cards": [
                    make_card(
                        "uuid-bolt",
                        "Test Bolt",
                        setCode="TST",
                        colors=["R"],
                        manaCost="{R}",
                        manaValue=1.0,
                        text="Test Bolt deals 3 damage to any target.",
                        identifiers={"scryfallId": "sf-bolt"},
                        foreignData=[
                            {"language": "German", "name": "Testblitz"},
                            {"language": "Spanish", "name": "Rayo de prueba"},
                        ],
                    ),
                    make_card(
                        "uuid-ghost",
                        "A-Test Ghost",
                        setCode="TST",
                        isOnlineOnly=True,
                        type="Creature — Spirit",
                    ),
                ],
            }
        },
    }
