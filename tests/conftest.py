"""Pytest fixtures for GearGrab screening tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from geargrab.accounts.provisioner import InMemoryAccountProvisioner
from geargrab.config.settings import Settings
from geargrab.db.models.base import Base
from geargrab.notifications.notifier import OutboxComplianceNotifier
from geargrab.providers.mock import MockScreeningProvider
from geargrab.providers.registry import ProviderRegistry
from geargrab.screening.clock import VirtualClock
from geargrab.screening.services import ScreeningServices, create_screening_services
from geargrab.screening.store import InMemoryScreeningRecordStore
from geargrab.screening.types import ScreeningRequest
from helpers import make_request

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
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: mock provider, fast polling, no external services."""
    return Settings(
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        ADMIN_API_KEY=SecretStr("test-admin-key"),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SCREENING_DEFAULT_PROVIDER="mock",
        SCREENING_POLL_INTERVAL_SECONDS=30,
        SCREENING_MAX_POLL_ATTEMPTS=144,
        SENDGRID_API_KEY=None,
    )


@pytest.fixture
def screening_request() -> ScreeningRequest:
    return make_request()


# =============================================================================
# Workflow components
# =============================================================================


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def store() -> InMemoryScreeningRecordStore:
    return InMemoryScreeningRecordStore()


@pytest.fixture
def mock_provider() -> MockScreeningProvider:
    return MockScreeningProvider(polls_until_complete=2)


@pytest.fixture
def notifier() -> OutboxComplianceNotifier:
    return OutboxComplianceNotifier()


@pytest.fixture
def provisioner() -> InMemoryAccountProvisioner:
    return InMemoryAccountProvisioner(hash_credentials=False)


@pytest.fixture
def services(
    test_settings: Settings,
    store: InMemoryScreeningRecordStore,
    mock_provider: MockScreeningProvider,
    notifier: OutboxComplianceNotifier,
    provisioner: InMemoryAccountProvisioner,
    clock: VirtualClock,
) -> ScreeningServices:
    """In-memory screening components driven by the virtual clock."""
    return create_screening_services(
        test_settings,
        store=store,
        registry=ProviderRegistry([mock_provider], default="mock"),
        notifier=notifier,
        provisioner=provisioner,
        clock=clock,
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# =============================================================================
# API test fixtures
# =============================================================================


@pytest.fixture
def test_app(test_settings: Settings, services: ScreeningServices) -> FastAPI:
    """FastAPI application wired to the in-memory components."""
    from geargrab.api.app import create_app

    return create_app(settings=test_settings, services=services)


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client calling the test application in-process."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-admin-key"}
