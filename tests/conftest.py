"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory async SQLite engine and session factory
- RelayStore bound to that engine
- A publisher that records events instead of fanning them out
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hostrelay.db.connection import (
    create_engine_from_url,
    create_session_factory,
    init_db,
)
from hostrelay.services.store import RelayStore

MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"


def pytest_configure(config):
    """Keep the default data dir out of the user's home during tests."""
    if not os.environ.get("HOSTRELAY_DATA_DIR"):
        os.environ["HOSTRELAY_DATA_DIR"] = os.path.join(
            str(config.rootpath), ".pytest-hostrelay-data"
        )


class RecordingPublisher:
    """Stands in for the broadcaster; keeps every published event."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def publish(self, event: dict[str, Any]) -> int:
        self.events.append(event)
        return 1


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with all tables created."""
    engine = create_engine_from_url(MEMORY_DB_URL)
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> RelayStore:
    return RelayStore(session_factory)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
