"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from petwash.app.main import app
from petwash.app.db.session import get_db, Base
import petwash.app.core.redis_client as redis_client_module
from petwash.app.services.realtime_hub import RealtimeHub

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def setex(self, key, seconds, value):
        return await self.set(key, value, ex=seconds)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            self.ttls.pop(key, None)
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.ttls = {}

    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by cache and token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture(autouse=True)
def realtime_hub():
    """Fresh hub per test; the lifespan does not run under ASGITransport."""
    hub = RealtimeHub()
    app.state.realtime_hub = hub
    return hub

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# --- Walk fixtures ---

async def register(client, username, role, **extra):
    payload = {
        "email": f"{username}@test.com",
        "username": username,
        "password": "password123",
        "role": role,
        "first_name": username.capitalize(),
        "last_name": "Tester",
        "phone_number": "+972500000000",
    }
    payload.update(extra)
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()
    return data["access_token"], data["user_id"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def owner(client):
    """Owner token and id."""
    return await register(client, "owner1", "OWNER")

@pytest.fixture
async def walker(client):
    """Walker token and id."""
    return await register(client, "walker1", "WALKER")

@pytest.fixture
async def pending_walk(client, owner, walker):
    """A booked walk for a freshly registered pet. Returns the walk id."""
    owner_token, _ = owner
    _, walker_id = walker
    response = await client.post(
        "/api/walk-my-pet/pets",
        json={"name": "Rex", "breed": "Labrador"},
        headers=auth(owner_token),
    )
    assert response.status_code == 201, response.text
    pet_id = response.json()["id"]

    response = await client.post(
        "/api/walk-my-pet/walks",
        json={"petId": pet_id, "walkerId": walker_id, "pickupLat": 32.0853, "pickupLon": 34.7818},
        headers=auth(owner_token),
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]
