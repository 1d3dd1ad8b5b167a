"""
ShopLedger - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read at import time; point the application at SQLite first
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.financial_year import FinancialYear
from app.models.shop import Shop
from app.services.chart_of_accounts_service import ChartOfAccountsService, SystemAccounts
from app.services.financial_year_service import FinancialYearService
from app.services.shop_service import ProvisioningResult, ShopService
from main import app as fastapi_app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database and session for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session with the application."""

    async def override_get_session():
        yield db_session

    fastapi_app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def provisioned(db_session: AsyncSession) -> ProvisioningResult:
    """A shop created through the provisioning path."""
    return await ShopService(db_session).create_shop("S1", "متجر واحد", "Shop One")


@pytest_asyncio.fixture
async def shop(provisioned: ProvisioningResult) -> Shop:
    return provisioned.shop


@pytest_asyncio.fixture
async def system_accounts(db_session: AsyncSession, shop: Shop) -> SystemAccounts:
    return await ChartOfAccountsService(db_session).get_system_accounts(shop.id, shop.code)


@pytest_asyncio.fixture
async def current_year(db_session: AsyncSession, shop: Shop, clock) -> FinancialYear:
    """FY2025, the shop's first and therefore current year."""
    return await FinancialYearService(db_session, clock=clock).create(
        shop.id, "FY2025", date(2025, 1, 1), date(2025, 12, 31), Decimal("10000")
    )


@pytest_asyncio.fixture
async def previous_year(db_session: AsyncSession, shop: Shop, current_year: FinancialYear, clock) -> FinancialYear:
    """FY2024, created after FY2025 so it is not current."""
    return await FinancialYearService(db_session, clock=clock).create(
        shop.id, "FY2024", date(2024, 1, 1), date(2024, 12, 31), Decimal("8000")
    )


@pytest.fixture
def headers(shop: Shop, user_id: UUID) -> dict:
    return {"X-Shop-ID": str(shop.id), "X-User-ID": str(user_id)}
