"""
Pytest configuration and fixtures for the billing core tests.

Every test gets its own in-memory SQLite database. Settings are pointed at
SQLite before the package is imported so the module-level engine never needs
a PostgreSQL driver connection.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from signage_billing.auth import create_access_token  # noqa: E402
from signage_billing.database import Base, get_db  # noqa: E402
from signage_billing.exception_handlers import register_exception_handlers  # noqa: E402
from signage_billing.middleware.logging import StructuredLoggingMiddleware  # noqa: E402
from signage_billing.models import Display, Organization, Plan, Promotion  # noqa: E402
from signage_billing.routes import audit_log, billing, displays, organizations, plans, promotions  # noqa: E402
from signage_billing.utils.clock import utcnow  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_USER_ID = "admin-0001"


@pytest.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database for each test"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Factories ──────────────────────────────────────────────────────────────────


@pytest.fixture
def make_organization(db: AsyncSession):
    """Create an organization; keyword arguments override the active, quota-5 defaults"""

    async def _make(**overrides) -> Organization:
        suffix = uuid.uuid4().hex[:8]
        values = {
            "name": f"Org {suffix}",
            "slug": f"org-{suffix}",
            "billing_email": f"billing-{suffix}@example.com",
            "subscription_status": "active",
            "screen_quota": 5,
        }
        values.update(overrides)
        organization = Organization(**values)
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        return organization

    return _make


@pytest.fixture
def add_displays(db: AsyncSession):
    async def _add(organization: Organization, count: int) -> None:
        for i in range(count):
            db.add(Display(organization_id=organization.id, name=f"Screen {i + 1}"))
        await db.commit()

    return _add


@pytest.fixture
def make_plan(db: AsyncSession):
    async def _make(**overrides) -> Plan:
        suffix = uuid.uuid4().hex[:8]
        values = {
            "slug": f"plan-{suffix}",
            "name": f"Plan {suffix}",
            "screen_quota": 10,
            "price_usd_monthly": 2900,
            "price_usd_yearly": 29000,
            "price_inr_monthly": 199900,
            "price_inr_yearly": 1999000,
            "features": ["Scheduling"],
        }
        values.update(overrides)
        plan = Plan(**values)
        db.add(plan)
        await db.commit()
        await db.refresh(plan)
        return plan

    return _make


@pytest.fixture
def make_promotion(db: AsyncSession):
    """Insert a promotion row directly, bypassing service validation"""

    async def _make(applicable_plans=None, **overrides) -> Promotion:
        suffix = uuid.uuid4().hex[:6].upper()
        values = {
            "code": f"PROMO{suffix}",
            "name": f"Promotion {suffix}",
            "discount_type": "percentage",
            "discount_value": 20.0,
            "max_per_customer": 1,
            "current_redemptions": 0,
            "starts_at": utcnow() - timedelta(days=1),
            "is_active": True,
        }
        values.update(overrides)
        promotion = Promotion(**values)
        promotion.applicable_plans = list(applicable_plans or [])
        db.add(promotion)
        await db.commit()
        return promotion

    return _make


@pytest.fixture
async def organization(make_organization) -> Organization:
    return await make_organization()


# ── HTTP ───────────────────────────────────────────────────────────────────────


def build_test_app() -> FastAPI:
    """All routers under /api/v1, without the logging setup create_app() performs"""
    app = FastAPI()
    app.add_middleware(StructuredLoggingMiddleware)
    register_exception_handlers(app)
    for module in (plans, promotions, organizations, audit_log, billing, displays):
        app.include_router(module.router, prefix="/api/v1")
    return app


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    app = build_test_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    token = create_access_token(ADMIN_USER_ID, is_super_admin=True, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}", "User-Agent": "pytest-admin"}


@pytest.fixture
def tenant_headers(organization: Organization) -> dict:
    token = create_access_token("user-0001", organization_id=organization.id, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Bearer headers for a member of the given organization"""

    def _headers(organization: Organization, user_id: str = "user-0001") -> dict:
        token = create_access_token(user_id, organization_id=organization.id, expires_delta=timedelta(minutes=30))
        return {"Authorization": f"Bearer {token}"}

    return _headers
