"""
Concurrent redemption tests

Each redeem runs in its own session and connection against a file-backed
SQLite database, so the conditional increment is exercised across real
concurrent transactions.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from signage_billing.database import Base
from signage_billing.exceptions import InvalidArgumentError
from signage_billing.models import Organization, Promotion, PromotionRedemption
from signage_billing.services.promotion_service import PromotionService
from signage_billing.utils.clock import utcnow


@pytest.fixture
async def file_session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", connect_args={"timeout": 30})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

    await engine.dispose()


async def seed(factory, organizations: int, **promotion_values) -> tuple[str, list[str]]:
    async with factory() as session:
        orgs = [
            Organization(name=f"Org {i}", slug=f"org-{i}", subscription_status="active")
            for i in range(organizations)
        ]
        promotion = Promotion(
            code="RUSH",
            name="Rush",
            discount_type="percentage",
            discount_value=10,
            starts_at=utcnow() - timedelta(days=1),
            **promotion_values,
        )
        session.add_all([*orgs, promotion])
        await session.commit()
        return promotion.id, [org.id for org in orgs]


async def redeem_in_own_session(factory, organization_id: str) -> bool:
    async with factory() as session:
        try:
            await PromotionService(session).redeem("RUSH", organization_id, 10)
        except InvalidArgumentError:
            return False
        return True


async def totals(factory, promotion_id: str) -> tuple[int, int]:
    async with factory() as session:
        rows = (
            await session.execute(
                select(func.count(PromotionRedemption.id)).where(PromotionRedemption.promotion_id == promotion_id)
            )
        ).scalar_one()
        counter = (
            await session.execute(select(Promotion.current_redemptions).where(Promotion.id == promotion_id))
        ).scalar_one()
        return rows, counter


class TestConcurrentRedemption:
    @pytest.mark.parametrize("max_per_customer", [1, 3])
    async def test_per_customer_cap_holds(self, file_session_factory, max_per_customer):
        promotion_id, (organization_id,) = await seed(
            file_session_factory, 1, max_per_customer=max_per_customer
        )

        results = await asyncio.gather(
            *(redeem_in_own_session(file_session_factory, organization_id) for _ in range(max_per_customer + 5))
        )

        assert results.count(True) == max_per_customer
        assert await totals(file_session_factory, promotion_id) == (max_per_customer, max_per_customer)

    async def test_global_cap_holds(self, file_session_factory):
        promotion_id, organization_ids = await seed(file_session_factory, 8, max_redemptions=3)

        results = await asyncio.gather(
            *(redeem_in_own_session(file_session_factory, org_id) for org_id in organization_ids)
        )

        assert results.count(True) == 3
        assert await totals(file_session_factory, promotion_id) == (3, 3)

    async def test_unlimited_promotion_takes_everyone(self, file_session_factory):
        promotion_id, organization_ids = await seed(file_session_factory, 6)

        results = await asyncio.gather(
            *(redeem_in_own_session(file_session_factory, org_id) for org_id in organization_ids)
        )

        assert all(results)
        assert await totals(file_session_factory, promotion_id) == (6, 6)
