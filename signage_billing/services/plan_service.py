"""
Plan Catalog Service

CRUD over the plan catalog plus the policy-bearing operations: soft delete,
duplicate-for-review and atomic reorder.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from signage_billing.models.plan import Plan
from signage_billing.schemas.plan import PlanCreate, PlanUpdate

logger = logging.getLogger(__name__)


class PlanService:
    """Service for the purchasable plan catalog."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self) -> list[Plan]:
        result = await self.db.execute(select(Plan).order_by(Plan.sort_order.asc(), Plan.created_at.asc()))
        return list(result.scalars().all())

    async def find_active(self) -> list[Plan]:
        """Plans offered to customers: active and public, in display order."""
        result = await self.db.execute(
            select(Plan).where(Plan.is_active.is_(True), Plan.is_public.is_(True)).order_by(Plan.sort_order.asc())
        )
        return list(result.scalars().all())

    async def find_one(self, plan_id: str) -> Plan:
        plan = await self.db.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    async def find_by_slug(self, slug: str) -> Plan:
        plan = await self._get_by_slug(slug)
        if plan is None:
            raise NotFoundError("Plan", message=f"Plan with slug '{slug}' not found")
        return plan

    async def create(self, data: PlanCreate) -> Plan:
        if await self._get_by_slug(data.slug) is not None:
            raise ConflictError("Plan", "slug", data.slug)

        plan = Plan(**data.model_dump())
        self.db.add(plan)
        await self.db.commit()
        await self.db.refresh(plan)

        logger.info(f"Created plan: {plan.slug} ({plan.id})")
        return plan

    async def update(self, plan_id: str, data: PlanUpdate) -> Plan:
        plan = await self.find_one(plan_id)
        changes = data.model_dump(exclude_unset=True)

        new_slug = changes.get("slug")
        if new_slug is not None and new_slug != plan.slug:
            existing = await self._get_by_slug(new_slug)
            if existing is not None and existing.id != plan.id:
                raise ConflictError("Plan", "slug", new_slug)

        for field, value in changes.items():
            if value is None and not Plan.__table__.columns[field].nullable:
                continue
            setattr(plan, field, value)

        await self.db.commit()
        await self.db.refresh(plan)

        logger.info(f"Updated plan: {plan.slug} ({plan.id}) fields={sorted(changes)}")
        return plan

    async def delete(self, plan_id: str) -> Plan:
        """
        Soft delete: the plan stops being offered but stays referenceable by
        historical invoices and promotions.
        """
        plan = await self.find_one(plan_id)
        plan.is_active = False
        await self.db.commit()
        await self.db.refresh(plan)

        logger.info(f"Soft-deleted plan: {plan.slug} ({plan.id})")
        return plan

    async def duplicate(self, plan_id: str) -> Plan:
        """
        Copy a plan for editing. The copy is inactive and private until an
        admin reviews it; its slug is the first free of `<slug>-copy`,
        `<slug>-copy-1`, `<slug>-copy-2`, ...
        """
        source = await self.find_one(plan_id)

        base_slug = f"{source.slug}-copy"
        slug = base_slug
        counter = 1
        while await self._get_by_slug(slug) is not None:
            slug = f"{base_slug}-{counter}"
            counter += 1

        copy = Plan(**{field: getattr(source, field) for field in Plan.COPYABLE_FIELDS})
        copy.slug = slug
        copy.name = f"{source.name} (Copy)"
        copy.features = list(source.features or [])
        copy.feature_flags = dict(source.feature_flags) if source.feature_flags else None
        copy.is_active = False
        copy.is_public = False

        self.db.add(copy)
        await self.db.commit()
        await self.db.refresh(copy)

        logger.info(f"Duplicated plan {source.slug} ({source.id}) as {copy.slug} ({copy.id})")
        return copy

    async def reorder(self, plan_ids: list[str]) -> list[Plan]:
        """
        Set sort_order to each plan's position in `plan_ids`.

        Every id is checked before any write; the updates then commit in one
        transaction, so either every listed plan moves or none does.
        """
        if len(set(plan_ids)) != len(plan_ids):
            raise InvalidArgumentError("Plan ids must not repeat", field="plans")

        result = await self.db.execute(select(Plan.id).where(Plan.id.in_(plan_ids)))
        found = set(result.scalars().all())
        missing = [plan_id for plan_id in plan_ids if plan_id not in found]
        if missing:
            raise NotFoundError(
                "Plan",
                missing,
                message=f"Plans not found: {', '.join(missing)}",
            )

        try:
            for position, plan_id in enumerate(plan_ids):
                await self.db.execute(
                    update(Plan)
                    .where(Plan.id == plan_id)
                    .values(sort_order=position)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        result = await self.db.execute(
            select(Plan).where(Plan.id.in_(plan_ids)).execution_options(populate_existing=True)
        )
        plans = sorted(result.scalars().all(), key=lambda plan: plan.sort_order)

        logger.info(f"Reordered {len(plans)} plans")
        return plans

    async def _get_by_slug(self, slug: str) -> Plan | None:
        result = await self.db.execute(select(Plan).where(Plan.slug == slug))
        return result.scalars().first()
