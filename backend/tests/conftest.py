"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Test settings must be in place before the app modules read them
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ASAAS_WEBHOOK_TOKEN", "test-asaas-token")
os.environ.setdefault("SENDPULSE_WEBHOOK_TOKEN", "test-sendpulse-token")
os.environ.setdefault("REMINDER_SCHEDULER_ENABLED", "false")

import pytest
from datetime import date, timedelta
from typing import AsyncGenerator
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import (
    Base,
    Subscription,
    SubscriptionStatus,
    User,
    UserRole,
)
from infrastructure.database.connection import get_db
from core.security import password_hasher
from api.routes.auth import token_service

CRON_HEADERS = {"x-cron-secret": "test-cron-secret"}

# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


async def _make_user(
    db_session: AsyncSession,
    email: str,
    name: str,
    role: str = UserRole.CUSTOMER.value,
    **kwargs,
) -> User:
    user = User(
        id=str(uuid4()),
        email=email,
        password_hash=password_hasher.hash("Testpassword123"),
        name=name,
        role=role,
        status="active",
        email_verified=True,
        **kwargs,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a customer."""
    return await _make_user(
        db_session,
        "test@example.com",
        "Maria Silva",
        phone="11987654321",
        whatsapp="11987654321",
        asaas_customer_id="cus_000001",
    )


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@example.com", "João Souza")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(
        db_session, "admin@svlentes.com.br", "Admin", role=UserRole.ADMIN.value
    )


@pytest.fixture
async def support_user(db_session: AsyncSession) -> User:
    return await _make_user(
        db_session, "support@svlentes.com.br", "Suporte", role=UserRole.SUPPORT.value
    )


def _headers(user: User) -> dict:
    access_token = token_service.create_access_token(user_id=user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for the test customer."""
    return _headers(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return _headers(other_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest.fixture
def support_headers(support_user: User) -> dict:
    return _headers(support_user)


@pytest.fixture
def cron_headers() -> dict:
    return dict(CRON_HEADERS)


@pytest.fixture
async def active_subscription(db_session: AsyncSession, test_user: User) -> Subscription:
    """Active monthly subscription linked to Asaas."""
    subscription = Subscription(
        id=str(uuid4()),
        user_id=test_user.id,
        plan_id="basico",
        billing_interval="monthly",
        status=SubscriptionStatus.ACTIVE.value,
        payment_method="PIX",
        amount=99.90,
        asaas_subscription_id="sub_000001",
        next_billing_date=date.today() + timedelta(days=20),
        shipping_address={
            "cep": "01310-100",
            "street": "Avenida Paulista",
            "number": "1000",
            "complement": None,
            "neighborhood": "Bela Vista",
            "city": "São Paulo",
            "state": "SP",
        },
    )
    db_session.add(subscription)
    await db_session.commit()
    await db_session.refresh(subscription)
    return subscription


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
