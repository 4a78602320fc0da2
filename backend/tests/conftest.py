"""
Centralized Test Configuration.
"""

import pytest
import httpx
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, get_session_factory, Base, enable_sqlite_foreign_keys
from backend.app.core.reliability import CircuitBreaker, carrier_circuit_breaker
from backend.app.services.account_locks import account_locks
from backend.app.services.carrier_client import CarrierClient, get_carrier_client
from backend.app.services.payment_client import PaymentClient, get_payment_client
from backend.tests.factories import ENROLLMENT, FakeGateway, make_headers, seed_account, seed_catalog
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Foreign keys on, matching the app engine
event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}

    async def aclose(self):
        self.store = {}


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()
    account_locks.clear()
    carrier_circuit_breaker.reset_state()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    # The pooled connection's internal mutex binds to this test's event loop
    await engine.dispose()


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def session_factory():
    """Session factory for tests that need more than one session."""
    return TestingSessionLocal


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# Auth and data

@pytest.fixture
def admin_headers():
    return make_headers("ADMIN")


@pytest.fixture
def dispatch_headers():
    return make_headers("DISPATCH")


@pytest.fixture
def accountant_headers():
    return make_headers("ACCOUNTANT")


@pytest.fixture
def user_headers():
    return make_headers("USER", enrollment=ENROLLMENT, sub="brand@example.com")


@pytest.fixture
async def funded_account(db_session):
    """Account ENR-1001 holding 500."""
    return await seed_account(db_session, balance="500")


@pytest.fixture
async def catalog(db_session):
    await seed_catalog(db_session)


@pytest.fixture
def carrier():
    """Fake carrier API with login pre-wired; also overrides the app's carrier client."""
    fake = FakeGateway()
    fake.on("POST", "/auth/login", 200, {"token": "carrier-token"})
    breaker = CircuitBreaker(failure_threshold=5, reset_timeout=60)

    def build():
        return CarrierClient(
            base_url="https://carrier.test/v1/external",
            email="ops@example.com",
            password="secret",
            transport=httpx.MockTransport(fake.handler),
            breaker=breaker,
        )

    fake.breaker = breaker
    fake.client = build
    app.dependency_overrides[get_carrier_client] = build
    yield fake
    app.dependency_overrides.pop(get_carrier_client, None)


@pytest.fixture
def payment_gateway():
    fake = FakeGateway()

    def build():
        return PaymentClient(
            base_url="https://payments.test/api/1.1",
            api_key="key",
            auth_token="token",
            transport=httpx.MockTransport(fake.handler),
        )

    fake.client = build
    app.dependency_overrides[get_payment_client] = build
    yield fake
    app.dependency_overrides.pop(get_payment_client, None)
