"""Pytest configuration and fixtures for onboarding tests.

Database tests run against an in-memory SQLite database (aiosqlite), one
per test. Blob storage and the public id sequence are replaced by
in-process fakes that record every call.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from onboarding import models  # noqa: F401
from onboarding.auth.deps import get_current_owner
from onboarding.config import settings
from onboarding.database import Base, get_db
from onboarding.main import app
from onboarding.services.public_id import SequenceUnavailableError
from onboarding.storage.blob_store import BlobStoreError, build_proxy_url, get_blob_store

OWNER_ID = "owner-0001"
BLOB_BASE = "https://blobs.test"

# Signed URLs are never cached in tests
settings.signed_url_cache_enabled = False


def blob_url(key: str) -> str:
    return f"{BLOB_BASE}/{key}"


# ── Fakes ────────────────────────────────────────────────────────

class FakeBlobStore:
    """Records deletes and signs; keys in `fail_deletes` raise on delete."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.signed: list[str] = []
        self.fail_deletes: set[str] = set()
        self.fail_signing = False

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        self.objects[key] = data
        return blob_url(key)

    async def delete(self, key: str) -> None:
        if key in self.fail_deletes:
            raise BlobStoreError(f"Delete failed for {key}")
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def sign(self, key: str, ttl_seconds: int) -> str:
        if self.fail_signing:
            raise BlobStoreError(f"Signing failed for {key}")
        self.signed.append(key)
        return f"https://signed.test/{key}?ttl={ttl_seconds}"

    def proxy_url(self, key: str) -> str:
        return build_proxy_url(key)


class FakeSequence:
    def __init__(self, start: int = 5001, available: bool = True):
        self.value = start
        self.available = available
        self.calls: list[str] = []

    async def next_value(self, name: str) -> int:
        self.calls.append(name)
        if not self.available:
            raise SequenceUnavailableError("sequence missing")
        value = self.value
        self.value += 1
        return value


# ── Database ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def sequence() -> FakeSequence:
    return FakeSequence()


@pytest.fixture
def unavailable_sequence() -> FakeSequence:
    return FakeSequence(available=False)


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


# ── API client ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(db_session, blob_store) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database, owner and blob store overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_owner] = lambda: OWNER_ID
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "cache: Cache tests")
