"""Async engine and session helpers."""
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from mssp.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> AsyncEngine:
    """Create the engine; SQLite connections get foreign key enforcement."""
    async_engine = create_async_engine(database_url, future=True)
    if make_url(database_url).get_backend_name() == "sqlite":
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _: Any) -> None:
    # Value rows rely on ON DELETE CASCADE when a definition is hard deleted.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine: AsyncEngine = build_engine(settings.async_database_url)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; uncommitted work is rolled back when it closes."""
    async with AsyncSessionLocal() as session:
        yield session
