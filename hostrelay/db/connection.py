"""Database connection management for the relay.

Everything is async: one engine per process, built from config, with a
session factory handed to the store.

Usage:
    from hostrelay.db.connection import create_engine_from_url, create_session_factory, init_db

    engine = create_engine_from_url(resolve_database_url(config))
    await init_db(engine)
    sessions = create_session_factory(engine)
"""

import logging
import os
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hostrelay.db.models import Base

logger = logging.getLogger(__name__)


def to_async_url(url: str) -> str:
    """Convert a sync SQLite URL to its aiosqlite form.

    Other URLs are returned unchanged.
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url == "sqlite://":
        return "sqlite+aiosqlite://"
    return url


def resolve_database_url(configured: str | None = None) -> str:
    """Pick the async database URL.

    Precedence:
    1. The configured store URL (config file or env override)
    2. DATABASE_URL
    3. SQLite file in the user data dir

    Args:
        configured: store.database_url from RelayConfig, if set.
    """
    url = (configured or "").strip() or os.environ.get("DATABASE_URL", "").strip()
    if url:
        return to_async_url(url)

    from hostrelay.utils.paths import ensure_data_dir, get_default_db_path

    ensure_data_dir()
    return f"sqlite+aiosqlite:///{get_default_db_path()}"


def _is_memory_url(url: str) -> bool:
    return url.endswith("://") or ":memory:" in url


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine and enable SQLite foreign keys.

    In-memory SQLite URLs share a single connection so every session sees
    the same database.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite") and _is_memory_url(url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_async_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            """Enable referential integrity (disabled by default in SQLite)."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the store; one session per operation."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. No migrations; existing tables are left alone."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
