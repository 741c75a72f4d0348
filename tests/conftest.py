"""Common test fixtures and configurations."""

import os

# Settings are read at import time, so the environment is prepared first
os.environ["PYTEST_RUNNING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-jwt-signing"
os.environ["INTERNAL_API_KEY"] = "test-internal-api-key-0123456789abcdef"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_paystack_secret"
os.environ["SHUTDOWN_GRACE_SECONDS"] = "0"

import logging
from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401  registers the tables on Base.metadata
from app.core.base_model import Base
from app.core.config import settings
from app.core.database import get_db
from app.main import app as app_instance
from app.routers.payment_router import get_payment_gateway
from app.schemas.payment_schemas import GatewayInitialization
from app.services.credit.gateway import PaymentGatewayClient
from app.services.credit.ledger import CreditLedger
from app.services.credit.reset_policy import DailyResetPolicy
from tests.helpers import DAY_ONE, FixedClock, create_test_token

logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


@pytest.fixture
async def engine(tmp_path):
    """A file-backed SQLite database per test, so concurrent sessions really contend."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credits.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(DAY_ONE)


@pytest.fixture
def reset_policy(clock) -> DailyResetPolicy:
    return DailyResetPolicy(daily_allowance=3, clock=clock)


@pytest.fixture
def ledger(db_session, reset_policy) -> CreditLedger:
    return CreditLedger(db_session, reset_policy=reset_policy)


@pytest.fixture
def make_ledger(reset_policy):
    """Build a ledger on another session, sharing the test clock."""

    def _make(session: AsyncSession) -> CreditLedger:
        return CreditLedger(session, reset_policy=reset_policy)

    return _make


@pytest.fixture
def mock_gateway() -> AsyncMock:
    gateway = AsyncMock(spec=PaymentGatewayClient)
    gateway.initialize.return_value = GatewayInitialization(
        authorization_url="https://checkout.paystack.com/abc123",
        access_code="abc123",
        reference="ref_init_001",
    )
    return gateway


@pytest.fixture
async def client(session_factory, mock_gateway) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to the per-test database and the mocked gateway."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app_instance.dependency_overrides[get_db] = override_get_db
    app_instance.dependency_overrides[get_payment_gateway] = lambda: mock_gateway
    async with AsyncClient(transport=ASGITransport(app=app_instance), base_url="http://test") as test_client:
        yield test_client
    app_instance.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def internal_headers() -> Dict[str, str]:
    return {"api-key": settings.INTERNAL_API_KEY}
