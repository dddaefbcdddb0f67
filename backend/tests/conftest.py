import os
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import patch

import fakeredis
import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test env vars before importing app modules
os.environ["SECRET_KEY"] = "test-secret-key-must-be-at-least-32-characters-long"
os.environ["REDIS_URL"] = "memory://"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["TIMEZONE"] = "UTC"

# Shared FakeServer holds state; each call creates a fresh client
# bound to the current event loop (avoids pytest-asyncio loop mismatch).
_fake_server = fakeredis.FakeServer()


async def _mock_get_redis():
    return fakeredis.aioredis.FakeRedis(server=_fake_server, decode_responses=True)


_redis_patcher = patch("sitepulse.core.redis.get_redis", _mock_get_redis)
_redis_patcher.start()

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# NullPool: WebSocket tests drive the app from another event loop, and pooled
# aiosqlite connections are bound to the loop that opened them.
engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"


def _make_fake_redis():
    """Create a fakeredis instance bound to the shared server."""
    return fakeredis.aioredis.FakeRedis(server=_fake_server, decode_responses=True)


def _bearer(owner_id: str) -> dict:
    from sitepulse.core.security import create_access_token

    token, _ = create_access_token(subject=owner_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
async def setup_database():
    from sitepulse.core.limiter import limiter
    from sitepulse.db.base import Base

    # Rate limits are not under test here
    limiter.enabled = False

    r = _make_fake_redis()
    await r.flushall()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def fake_redis():
    """Provide a fakeredis instance for direct use in tests."""
    return _make_fake_redis()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    from sitepulse.db.session import get_db
    from sitepulse.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # WebSocket handler opens its own sessions
    app.state._db_sessionmaker = TestingSessionLocal

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers() -> dict:
    """Dashboard auth headers for the owner of the test sites."""
    return _bearer(OWNER_ID)


@pytest.fixture
def other_owner_headers() -> dict:
    return _bearer(OTHER_OWNER_ID)


@pytest.fixture
def store_url(tmp_path: Path) -> str:
    """A throwaway SQLite file standing in for a site's own store."""
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


@pytest.fixture
async def site(db_session: AsyncSession, store_url: str) -> dict:
    """A configured site with a provisioned store, plus its plaintext API key."""
    from sitepulse.schemas.tenant import StoreCredentials, TenantCreate
    from sitepulse.services.tenant_service import TenantService

    service = TenantService(db_session)
    tenant, api_key = await service.create(
        OWNER_ID, TenantCreate(name="Test Site", url="https://example.com")
    )
    tenant = await service.attach_store(
        tenant.id,
        OWNER_ID,
        StoreCredentials(store_url=store_url, store_key="store-secret", create_schema=True),
    )
    await db_session.commit()
    return {"id": tenant.id, "api_key": api_key, "tenant": tenant, "store_url": store_url}


@pytest.fixture
async def unconfigured_site(db_session: AsyncSession) -> dict:
    """A site that exists but has no store attached yet."""
    from sitepulse.schemas.tenant import TenantCreate
    from sitepulse.services.tenant_service import TenantService

    tenant, api_key = await TenantService(db_session).create(
        OWNER_ID, TenantCreate(name="Bare Site", url="https://bare.example.com")
    )
    await db_session.commit()
    return {"id": tenant.id, "api_key": api_key, "tenant": tenant}


@pytest.fixture
def store_handle(site: dict):
    from sitepulse.services.credentials import StoreHandle

    return StoreHandle(tenant_id=site["id"], url=site["store_url"], secret="store-secret")


@pytest.fixture
def make_event():
    """Factory for AnalyticsEventData with sensible defaults."""
    from sitepulse.schemas.event import AnalyticsEventData

    def _make(site_id: str, **overrides):
        data = {
            "site_id": site_id,
            "page_url": "https://example.com/",
            "user_agent": "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
            "browser": "Firefox",
            "os": "Linux",
            "device": "Desktop",
            "session_id": "sess-1",
        }
        data.update(overrides)
        return AnalyticsEventData(**data)

    return _make
