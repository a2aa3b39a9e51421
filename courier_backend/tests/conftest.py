"""
Centralized Test Configuration.
"""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool, Pool

from courier_backend.app.main import app
from courier_backend.app.db.session import get_db, Base
import courier_backend.app.core.redis_client as redis_client_module
from courier_backend.app.models.entity_enums import HubType, RiderStatus, MerchantStatus
from courier_backend.app.schemas.hub import HubUpsert
from courier_backend.app.schemas.rider import RiderUpsert
from courier_backend.app.schemas.merchant import MerchantUpsert
from courier_backend.app.services import entities
from courier_backend.app.services.parcels import create_parcel
from courier_backend.tests.helpers import ADMIN, make_token, parcel_data

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        return 1 if self.store.pop(key, None) is not None else 0

    async def flushdb(self):
        self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(autouse=True)
def mock_redis(monkeypatch):
    """Every test gets a fresh in-memory Redis in place of the real client."""
    fake = MockRedis()
    monkeypatch.setattr(redis_client_module, "redis_client", fake)
    return fake


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    """Session for calling services directly and seeding fixture data."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Async client for testing, wired to the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
async def network(db_session):
    """
    Two districts with area hubs, riders and merchants.

        HD1 Dhaka district  (covers "Dhaka")
          HA1 Gulshan area  (Gulshan, Banani)   riders RD1, RD2
          HA2 Dhanmondi     (Dhanmondi)         rider RD3
        HD2 Chattogram      (covers "Chattogram")  rider RD4
          HA3 Agrabad       (Agrabad)
    """
    hubs = [
        ("HD1", HubUpsert(name="Dhaka District Hub", hub_type=HubType.DISTRICT, district="Dhaka",
                          capacity=5000, coverage_areas=["Dhaka"])),
        ("HD2", HubUpsert(name="Chattogram District Hub", hub_type=HubType.DISTRICT, district="Chattogram",
                          capacity=3000, coverage_areas=["Chattogram"])),
        ("HA1", HubUpsert(name="Gulshan Area Hub", hub_type=HubType.AREA, parent_hub_id="HD1",
                          capacity=800, coverage_areas=["Gulshan", "Banani"])),
        ("HA2", HubUpsert(name="Dhanmondi Area Hub", hub_type=HubType.AREA, parent_hub_id="HD1",
                          capacity=600, coverage_areas=["Dhanmondi"])),
        ("HA3", HubUpsert(name="Agrabad Area Hub", hub_type=HubType.AREA, parent_hub_id="HD2",
                          capacity=500, coverage_areas=["Agrabad"])),
    ]
    for hub_id, data in hubs:
        await entities.upsert_hub(db_session, hub_id, data, ADMIN)

    riders = [("RD1", "HA1"), ("RD2", "HA1"), ("RD3", "HA2"), ("RD4", "HD2")]
    for rider_id, hub_id in riders:
        await entities.upsert_rider(
            db_session, rider_id,
            RiderUpsert(name=f"Rider {rider_id}", hub_id=hub_id, status=RiderStatus.AVAILABLE),
            ADMIN,
        )

    await entities.upsert_merchant(
        db_session, "M1", MerchantUpsert(name="Rahim", shop_name="Rahim Fashion", status=MerchantStatus.VERIFIED), ADMIN
    )
    await entities.upsert_merchant(
        db_session, "M2", MerchantUpsert(name="Karim", shop_name="Karim Gadgets"), ADMIN
    )
    return SimpleNamespace(
        district_hubs=["HD1", "HD2"],
        area_hubs=["HA1", "HA2", "HA3"],
        riders=[r for r, _ in riders],
        verified_merchant="M1",
        pending_merchant="M2",
    )


@pytest.fixture
def book_parcel(db_session, network):
    """Factory booking parcels for the verified merchant from HA1."""
    async def _book(**overrides):
        return await create_parcel(db_session, parcel_data(**overrides), ADMIN)
    return _book
