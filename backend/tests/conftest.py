"""Master test fixtures.

Environment variables are set BEFORE any application imports so that
``config.Settings()`` initialises with test-safe values and never
touches Docker secrets, a production database or Cloudinary.
"""

import os
from datetime import datetime, timedelta, timezone

# ── Set test env vars before any app import ──────────────────────────
os.environ.update({
    "RECORD_STORE_BACKEND": "sql",
    "DATABASE_URL": "sqlite+aiosqlite://",
    "REDIS_URL": "redis://localhost:6379/0",
    "POSTGRES_PASSWORD": "testpassword",
    "PUBLIC_BASE_URL": "https://test.example.com",
    "CLOUDINARY_CLOUD_NAME": "test-cloud",
    "CLOUDINARY_API_KEY": "test-cloudinary-key",
    "CLOUDINARY_API_SECRET": "test-cloudinary-secret",
})

import pytest
import fakeredis
import fakeredis.aioredis as fakeredis_aio

from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine

# Now safe to import application code
from api.deps import get_object_store, get_record_store
from grants.lifecycle import GrantManager
from grants.redis_store import RedisRecordStore
from grants.store import SqlRecordStore
from models.media_grant import MediaGrant
from storage.object_store import ObjectStore

TTL_SECONDS = 3600


class FrozenClock:
    """Deterministic UTC clock shared by stores under test."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeObjectStore(ObjectStore):
    """Records uploads and hands back a CDN-style URL."""

    def __init__(self):
        self.uploads: list[tuple[str, bytes, str | None]] = []
        self.error: Exception | None = None

    async def upload(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        if self.error is not None:
            raise self.error
        self.uploads.append((filename, data, content_type))
        return f"https://cdn.test/{len(self.uploads)}/{filename}"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
async def sql_store(clock):
    """SQL record store on in-memory SQLite.

    AUTOCOMMIT makes every statement its own transaction, so coroutines
    sharing the single in-memory connection never roll back each other.
    """
    engine = create_async_engine("sqlite+aiosqlite://", echo=False, isolation_level="AUTOCOMMIT")
    store = SqlRecordStore(engine, ttl_seconds=TTL_SECONDS, timeout_seconds=5, clock=clock)
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def fake_redis():
    server = fakeredis.FakeServer()
    return fakeredis_aio.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
async def redis_store(fake_redis, clock):
    store = RedisRecordStore(fake_redis, ttl_seconds=TTL_SECONDS, timeout_seconds=5, clock=clock)
    yield store
    await store.close()


@pytest.fixture(params=["sql", "redis"])
def record_store(request):
    """Each record store backend in turn."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def grant_manager(record_store) -> GrantManager:
    return GrantManager(record_store)


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
async def test_client(sql_store, object_store):
    """HTTPX async client wired to the FastAPI app, with store overrides.

    The startup event is NOT run (no Cloudinary credentials, no sweeper).
    """
    from main import app

    app.dependency_overrides[get_record_store] = lambda: sql_store
    app.dependency_overrides[get_object_store] = lambda: object_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def grant_count(sql_store):
    """Async callable returning the number of rows in media_grants."""

    async def _count() -> int:
        async with sql_store._sessions() as db:
            result = await db.execute(select(func.count()).select_from(MediaGrant))
            return result.scalar_one()

    return _count
