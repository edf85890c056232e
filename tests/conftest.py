from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from mssp.core.config import get_settings  # noqa: E402

TEST_DB_PATH = ROOT / "test.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["API_TOKENS"] = "admin-token:admin,manager-token:manager,engineer-token:engineer"
get_settings.cache_clear()

ADMIN_HEADERS = {"Authorization": "Bearer admin-token"}
MANAGER_HEADERS = {"Authorization": "Bearer manager-token"}
ENGINEER_HEADERS = {"Authorization": "Bearer engineer-token"}


async def _reset_schema() -> None:
    from mssp.core.db import engine
    from mssp.models import Base

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)


@pytest.fixture()
async def client() -> AsyncIterator[AsyncClient]:
    from mssp.main import app

    await _reset_schema()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
async def session():
    from mssp.core.db import AsyncSessionLocal

    await _reset_schema()

    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"
