"""Pytest fixtures for AgriFAAS Connect tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from agrifaas.accounts.types import AccountStatus, Role, serialize_roles
from agrifaas.billing.lifecycle import SubscriptionLifecycle
from agrifaas.config.settings import Settings
from agrifaas.db.config import Database
from agrifaas.db.models.promo_code import PromotionalCode
from agrifaas.db.models.tenant import Tenant
from agrifaas.db.models.user import UserProfile
from agrifaas.integrations.auth_provider import InMemoryAuthProvider
from agrifaas.integrations.email import EmailResult

TEST_API_KEY = "test-api-secret"
TEST_PAYSTACK_SECRET = "sk_test_paystack_secret"
TEST_BASE_URL = "https://app.agrifaas.test"


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings and Collaborators
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: in-memory database, test secrets, public base URL."""
    return Settings(
        API_SECRET_KEY=SecretStr(TEST_API_KEY),
        PAYSTACK_SECRET_KEY=SecretStr(TEST_PAYSTACK_SECRET),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        BASE_URL=TEST_BASE_URL,
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
    )


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def lifecycle(test_settings: Settings) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(test_settings.billing)


@pytest.fixture
def auth_provider() -> InMemoryAuthProvider:
    return InMemoryAuthProvider()


@pytest.fixture
def email_sender() -> AsyncMock:
    """Email sender that records calls and always succeeds."""
    sender = AsyncMock()
    sender.send_email.return_value = EmailResult(True, "Email sent successfully.")
    return sender


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with all tables created."""
    db = Database.from_settings(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def make_tenant(database: Database, lifecycle: SubscriptionLifecycle, now: datetime):
    """Insert a tenant; defaults to a trial subscription started at ``now``."""

    async def factory(
        name: str = "Green Acres Farm",
        owner_id: str = "owner-1",
        subscription: dict | None = None,
        **fields,
    ) -> Tenant:
        if subscription is None:
            subscription = lifecycle.start_trial(owner_id=owner_id, now=now).to_document()
        async with database.transaction() as session:
            tenant = Tenant(
                name=name,
                owner_id=owner_id,
                currency="GHS",
                subscription=subscription,
                **fields,
            )
            session.add(tenant)
        return tenant

    return factory


@pytest.fixture
def make_profile(database: Database):
    """Insert a user profile; defaults to an Active admin without a tenant."""

    async def factory(
        user_id: str = "user-1",
        email: str | None = "kofi@example.com",
        status: AccountStatus = AccountStatus.ACTIVE,
        roles: set[Role] | None = None,
        **fields,
    ) -> UserProfile:
        async with database.transaction() as session:
            profile = UserProfile(
                user_id=user_id,
                full_name=fields.pop("full_name", "Kofi Mensah"),
                email_address=email,
                roles=serialize_roles(roles if roles is not None else {Role.ADMIN}),
                account_status=status.value,
                **fields,
            )
            session.add(profile)
        return profile

    return factory


@pytest.fixture
def make_promo_code(database: Database, now: datetime):
    """Insert a promotional code valid for thirty days after ``now``."""

    async def factory(
        code: str = "HARVEST20",
        discount_type: str = "percentage",
        discount_amount: float = 20,
        usage_limit: int = 5,
        times_used: int = 0,
        **fields,
    ) -> PromotionalCode:
        async with database.transaction() as session:
            promo = PromotionalCode(
                code=code,
                discount_type=discount_type,
                discount_amount=discount_amount,
                usage_limit=usage_limit,
                times_used=times_used,
                expiry_date=fields.pop("expiry_date", now + timedelta(days=30)),
                is_active=fields.pop("is_active", True),
                **fields,
            )
            session.add(promo)
        return promo

    return factory


@pytest.fixture
def load(database: Database) -> Callable[[type, str], Awaitable]:
    """Read a row back in a fresh session."""

    async def loader(model: type, pk: str):
        async with database.session() as session:
            return await session.get(model, pk)

    return loader


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def test_app(
    test_settings: Settings,
    database: Database,
    auth_provider: InMemoryAuthProvider,
    email_sender: AsyncMock,
) -> FastAPI:
    """Create a FastAPI test application around the test collaborators."""
    from agrifaas.api.app import create_app

    return create_app(
        settings=test_settings,
        database=database,
        auth_provider=auth_provider,
        email_sender=email_sender,
    )


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing.

    Provides an httpx.AsyncClient configured to call the test application
    directly without network overhead.
    """
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def authenticated_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client carrying the test API key."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {TEST_API_KEY}"},
    ) as client:
        yield client
