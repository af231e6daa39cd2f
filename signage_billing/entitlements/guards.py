"""
Entitlement guards.

Two independent request-time checks:

  * Quota guard: may the organization add one more unit of a countable
    resource (currently only screens)?
  * Subscription guard: may the organization perform a mutating request
    given its subscription status?

Each check is a pure decision function over organization state plus an async
wrapper that loads that state. Both wrappers fail closed: an organization
that cannot be resolved is denied with OrganizationNotFoundError.
"""

import enum
import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.exceptions import (
    OrganizationNotFoundError,
    QuotaExceededError,
    SubscriptionInactiveError,
)
from signage_billing.models.organization import UNLIMITED_QUOTA, Display, Organization, SubscriptionStatus
from signage_billing.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

READ_ONLY_METHODS = frozenset({"GET", "HEAD"})


class QuotaDimension(str, enum.Enum):
    screen = "screen"


# ── Pure decisions ─────────────────────────────────────────────────────────────


def evaluate_quota(dimension: QuotaDimension | str, quota: int, current: int) -> None:
    """
    Raise QuotaExceededError unless one more unit fits under `quota`.

    A quota of -1 is unlimited. A quota of 0 denies even at zero usage: the
    plan does not include this resource type.
    """
    if quota == UNLIMITED_QUOTA:
        return
    if current < quota:
        return
    raise QuotaExceededError(dimension=QuotaDimension(dimension).value, current=current, limit=quota)


def is_subscription_active(status: str, trial_ends_at: datetime | None, now: datetime | None = None) -> bool:
    if status == SubscriptionStatus.active.value:
        return True
    if status == SubscriptionStatus.trial.value:
        # A trial without an end date is never treated as unlimited
        if trial_ends_at is None:
            return False
        return as_utc(trial_ends_at) > (now or utcnow())
    return False


def evaluate_subscription(status: str, trial_ends_at: datetime | None, now: datetime | None = None) -> None:
    if not is_subscription_active(status, trial_ends_at, now):
        raise SubscriptionInactiveError(subscription_status=status)


def is_read_only(method: str) -> bool:
    return method.upper() in READ_ONLY_METHODS


# ── Lookups ────────────────────────────────────────────────────────────────────


async def _quota_snapshot(db: AsyncSession, organization_id: str, dimension: QuotaDimension) -> tuple[int, int] | None:
    """Return (quota, current_count) for the dimension, or None if the org is unknown."""
    if dimension is QuotaDimension.screen:
        display_count = (
            select(func.count(Display.id)).where(Display.organization_id == Organization.id).scalar_subquery()
        )
        result = await db.execute(
            select(Organization.screen_quota, display_count).where(Organization.id == organization_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]
    raise ValueError(f"Unsupported quota dimension: {dimension}")


async def check_quota(
    db: AsyncSession,
    organization_id: str | None,
    dimension: QuotaDimension | str = QuotaDimension.screen,
) -> None:
    """Deny with QuotaExceededError when the organization is at its quota. No side effects."""
    if not organization_id:
        raise OrganizationNotFoundError()

    dimension = QuotaDimension(dimension)
    snapshot = await _quota_snapshot(db, organization_id, dimension)
    if snapshot is None:
        raise OrganizationNotFoundError()

    quota, current = snapshot
    try:
        evaluate_quota(dimension, quota, current)
    except QuotaExceededError:
        logger.info(
            "Quota denied: org=%s dimension=%s current=%d limit=%d", organization_id, dimension.value, current, quota
        )
        raise


async def check_subscription_active(db: AsyncSession, organization_id: str | None, method: str) -> None:
    """
    Deny mutating requests of organizations without an active subscription.

    Read-only methods pass without touching the database.
    """
    if is_read_only(method):
        return

    if not organization_id:
        raise OrganizationNotFoundError()

    result = await db.execute(
        select(Organization.subscription_status, Organization.trial_ends_at).where(Organization.id == organization_id)
    )
    row = result.first()
    if row is None:
        raise OrganizationNotFoundError()

    status, trial_ends_at = row
    try:
        evaluate_subscription(status, trial_ends_at)
    except SubscriptionInactiveError:
        logger.info("Subscription guard denied %s for org=%s (status=%s)", method.upper(), organization_id, status)
        raise
