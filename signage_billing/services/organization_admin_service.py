"""
Organization Administration Service

Admin-side mutations of an organization's subscription state: status and
quota edits, tier changes, trial extensions, suspension, admin notes and
GDPR erasure.

Suspension is a typed transition. suspend() snapshots the status in force into
`previous_status` and unsuspend() restores it, so a suspended organization
always knows what it returns to.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.exceptions import InvalidArgumentError, NotFoundError
from signage_billing.models.admin_audit_log import AdminAuditLogEntry
from signage_billing.models.organization import UNLIMITED_QUOTA, Display, Organization, SubscriptionStatus
from signage_billing.models.plan import Plan
from signage_billing.models.promotion import PromotionRedemption
from signage_billing.schemas.organization import OrganizationFilters, OrganizationUpdate
from signage_billing.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


class OrganizationAdminService:
    """Service for platform-admin operations on organizations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self, filters: OrganizationFilters) -> dict[str, Any]:
        stmt = select(Organization)

        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Organization.name).like(pattern),
                    func.lower(Organization.slug).like(pattern),
                    func.lower(Organization.billing_email).like(pattern),
                )
            )
        if filters.status:
            stmt = stmt.where(Organization.subscription_status == filters.status)
        if filters.subscription_tier:
            stmt = stmt.where(Organization.subscription_tier == filters.subscription_tier)

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

        sort_column = getattr(Organization, filters.sort_by)
        order = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        result = await self.db.execute(stmt.order_by(order, Organization.id).offset(filters.skip).limit(filters.take))

        return {"data": list(result.scalars().all()), "total": total, "skip": filters.skip, "take": filters.take}

    async def find_one(self, organization_id: str) -> Organization:
        organization = await self.db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization", organization_id)
        return organization

    async def update(self, organization_id: str, data: OrganizationUpdate) -> Organization:
        """
        Apply an admin edit.

        Status changes are limited to trial/active/past_due/canceled, and a
        suspended organization's status can only change through unsuspend().
        """
        organization = await self.find_one(organization_id)
        changes = data.model_dump(exclude_unset=True)

        new_status = changes.get("subscription_status")
        if new_status is not None:
            new_status = SubscriptionStatus(new_status).value
            if new_status == SubscriptionStatus.suspended.value:
                raise InvalidArgumentError("Use suspend to suspend an organization", field="subscription_status")
            if organization.subscription_status == SubscriptionStatus.suspended.value:
                raise InvalidArgumentError(
                    "Organization is suspended; unsuspend it before changing its status",
                    field="subscription_status",
                )
            changes["subscription_status"] = new_status

        if "trial_ends_at" in changes:
            changes["trial_ends_at"] = as_utc(changes["trial_ends_at"])

        for field, value in changes.items():
            if value is None and field in ("name", "screen_quota", "subscription_status"):
                continue
            setattr(organization, field, value)

        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Admin updated organization {organization_id}: {sorted(changes)}")
        return organization

    async def change_tier(self, organization_id: str, plan_slug: str) -> Organization:
        """Move an organization onto an active plan and adopt that plan's screen quota."""
        organization = await self.find_one(organization_id)

        result = await self.db.execute(select(Plan).where(Plan.slug == plan_slug))
        plan = result.scalars().first()
        if plan is None:
            raise NotFoundError("Plan", message=f"Plan with slug '{plan_slug}' not found")
        if not plan.is_active:
            raise InvalidArgumentError(f"Plan '{plan_slug}' is no longer active", field="plan_slug")

        previous_tier = organization.subscription_tier
        organization.subscription_tier = plan.slug
        organization.screen_quota = plan.screen_quota
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Changed tier for org {organization_id}: {previous_tier} -> {plan.slug}")
        return organization

    async def extend_trial(self, organization_id: str, days: int) -> Organization:
        if days <= 0:
            raise InvalidArgumentError("Days must be positive", field="days")

        organization = await self.find_one(organization_id)
        if organization.subscription_status == SubscriptionStatus.suspended.value:
            raise InvalidArgumentError("Organization is suspended; unsuspend it before extending its trial")

        current_end = as_utc(organization.trial_ends_at) or utcnow()
        new_end = current_end + timedelta(days=days)

        organization.trial_ends_at = new_end
        organization.subscription_status = SubscriptionStatus.trial.value
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Extended trial for org {organization_id} by {days} days (until {new_end.isoformat()})")
        return organization

    async def suspend(self, organization_id: str, reason: str) -> Organization:
        organization = await self.find_one(organization_id)

        if organization.subscription_status == SubscriptionStatus.suspended.value:
            raise InvalidArgumentError("Organization is already suspended")

        organization.previous_status = organization.subscription_status
        organization.suspended_at = utcnow()
        organization.suspension_reason = reason
        organization.subscription_status = SubscriptionStatus.suspended.value
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Suspended organization {organization_id}: {reason}")
        return organization

    async def unsuspend(self, organization_id: str) -> Organization:
        organization = await self.find_one(organization_id)

        if organization.subscription_status != SubscriptionStatus.suspended.value:
            raise InvalidArgumentError("Organization is not suspended")

        restored = organization.previous_status or SubscriptionStatus.active.value
        organization.subscription_status = restored
        organization.previous_status = None
        organization.suspended_at = None
        organization.suspension_reason = None
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Unsuspended organization {organization_id}, restored to {restored}")
        return organization

    async def add_note(self, organization_id: str, note: str, admin_user_id: str) -> dict[str, Any]:
        """Append an internal admin note; returns the organization and the new note."""
        if not note or not note.strip():
            raise InvalidArgumentError("Note must not be empty", field="note")

        organization = await self.find_one(organization_id)

        new_note = {
            "id": f"note-{uuid.uuid4().hex}",
            "note": note.strip(),
            "added_by": admin_user_id,
            "added_at": utcnow().isoformat(),
        }
        # JSON columns track reassignment, not in-place mutation
        organization.admin_notes = [*(organization.admin_notes or []), new_note]
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Added admin note to org {organization_id} by {admin_user_id}")
        return {"organization": organization, "note": new_note}

    async def erase(self, organization_id: str) -> dict[str, Any]:
        """
        GDPR erasure of an organization and everything it owns.

        Deletion runs child-first in one transaction:
          1. promotion redemptions
          2. displays
          3. the organization row
        Promotion counters are not decremented and admin audit entries are
        kept; both are platform records rather than tenant data.
        """
        organization = await self.find_one(organization_id)
        name = organization.name

        try:
            redemptions = await self.db.execute(
                delete(PromotionRedemption).where(PromotionRedemption.organization_id == organization_id)
            )
            displays = await self.db.execute(delete(Display).where(Display.organization_id == organization_id))
            await self.db.delete(organization)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.warning(
            f"DELETED organization {organization_id} ({name}): "
            f"{displays.rowcount} displays, {redemptions.rowcount} redemptions"
        )
        return {
            "deleted": True,
            "organization_id": organization_id,
            "organization_name": name,
            "displays_deleted": displays.rowcount,
            "redemptions_deleted": redemptions.rowcount,
        }

    async def get_stats(self, organization_id: str) -> dict[str, Any]:
        organization = await self.find_one(organization_id)

        display_count = (
            await self.db.execute(select(func.count(Display.id)).where(Display.organization_id == organization_id))
        ).scalar_one()
        redemption_count = (
            await self.db.execute(
                select(func.count(PromotionRedemption.id)).where(
                    PromotionRedemption.organization_id == organization_id
                )
            )
        ).scalar_one()
        last_admin_action_at = (
            await self.db.execute(
                select(func.max(AdminAuditLogEntry.created_at)).where(
                    AdminAuditLogEntry.target_type == "organization",
                    AdminAuditLogEntry.target_id == organization_id,
                )
            )
        ).scalar_one()

        if organization.screen_quota == UNLIMITED_QUOTA:
            screens_remaining = None
        else:
            screens_remaining = max(organization.screen_quota - display_count, 0)

        return {
            "display_count": display_count,
            "screen_quota": organization.screen_quota,
            "screens_remaining": screens_remaining,
            "redemption_count": redemption_count,
            "last_admin_action_at": as_utc(last_admin_action_at),
        }
