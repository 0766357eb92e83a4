"""
Test fixtures.

Each test gets a fresh SQLite database (aiosqlite) and, for HTTP tests, an
httpx AsyncClient talking to the FastAPI app over ASGITransport. Background
tasks run inside the request cycle there, so their effects are visible once
the response is returned.
"""
import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="fulfillment-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

import httpx
import pytest

from fulfillment.database import Base, engine, async_session_factory
from fulfillment import models  # noqa: F401
from fulfillment.main import app


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db(database):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
