"""
Tests for the entitlement guards

Pure decision functions first, then the database-backed checks.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from signage_billing.entitlements.guards import (
    QuotaDimension,
    check_quota,
    check_subscription_active,
    evaluate_quota,
    is_read_only,
    is_subscription_active,
)
from signage_billing.exceptions import (
    ErrorCode,
    OrganizationNotFoundError,
    QuotaExceededError,
    SubscriptionInactiveError,
)
from signage_billing.utils.clock import utcnow


class TestEvaluateQuota:
    def test_unlimited_quota_always_allows(self):
        for current in (0, 1, 10_000, 10**9):
            evaluate_quota(QuotaDimension.screen, -1, current)

    def test_denies_at_quota(self):
        with pytest.raises(QuotaExceededError) as exc_info:
            evaluate_quota(QuotaDimension.screen, 5, 5)

        err = exc_info.value
        assert err.status_code == 403
        assert err.error_code == ErrorCode.QUOTA_EXCEEDED
        assert err.details == {"dimension": "screen", "current": 5, "limit": 5}
        assert "5/5" in err.message

    def test_allows_one_below_quota(self):
        evaluate_quota(QuotaDimension.screen, 5, 4)

    def test_denies_above_quota(self):
        """Usage can exceed the quota after a downgrade; still denied"""
        with pytest.raises(QuotaExceededError):
            evaluate_quota("screen", 3, 7)

    def test_zero_quota_denies_at_zero_usage(self):
        with pytest.raises(QuotaExceededError) as exc_info:
            evaluate_quota(QuotaDimension.screen, 0, 0)
        assert exc_info.value.limit == 0

    def test_message_mentions_upgrade(self):
        with pytest.raises(QuotaExceededError) as exc_info:
            evaluate_quota(QuotaDimension.screen, 2, 2)
        assert exc_info.value.message == (
            "Screen quota exceeded. You have 2/2 screens. Please upgrade your plan to add more screens."
        )

    def test_unknown_dimension_rejected(self):
        with pytest.raises(ValueError):
            evaluate_quota("storage", 1, 1)


class TestIsSubscriptionActive:
    def test_active_passes(self):
        assert is_subscription_active("active", None) is True

    def test_trial_one_second_before_end_passes(self):
        now = utcnow()
        assert is_subscription_active("trial", now + timedelta(seconds=1), now=now) is True

    def test_trial_one_second_after_end_denied(self):
        now = utcnow()
        assert is_subscription_active("trial", now - timedelta(seconds=1), now=now) is False

    def test_trial_ending_exactly_now_denied(self):
        now = utcnow()
        assert is_subscription_active("trial", now, now=now) is False

    def test_trial_without_end_date_denied(self):
        assert is_subscription_active("trial", None) is False

    def test_naive_trial_end_treated_as_utc(self):
        now = utcnow()
        naive_end = (now + timedelta(hours=1)).replace(tzinfo=None)
        assert is_subscription_active("trial", naive_end, now=now) is True

    @pytest.mark.parametrize("status", ["past_due", "suspended", "canceled"])
    def test_other_statuses_denied(self, status):
        assert is_subscription_active(status, utcnow() + timedelta(days=30)) is False


class TestIsReadOnly:
    @pytest.mark.parametrize("method", ["GET", "HEAD", "get", "head"])
    def test_read_only_methods(self, method):
        assert is_read_only(method)

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
    def test_mutating_methods(self, method):
        assert not is_read_only(method)


class TestCheckQuota:
    async def test_allows_below_quota(self, db, make_organization, add_displays):
        organization = await make_organization(screen_quota=3)
        await add_displays(organization, 2)

        await check_quota(db, organization.id, QuotaDimension.screen)

    async def test_denies_at_quota(self, db, make_organization, add_displays):
        organization = await make_organization(screen_quota=3)
        await add_displays(organization, 3)

        with pytest.raises(QuotaExceededError) as exc_info:
            await check_quota(db, organization.id, QuotaDimension.screen)
        assert exc_info.value.current == 3
        assert exc_info.value.limit == 3

    async def test_unlimited_with_many_displays(self, db, make_organization, add_displays):
        organization = await make_organization(screen_quota=-1)
        await add_displays(organization, 25)

        await check_quota(db, organization.id)

    async def test_counts_only_own_displays(self, db, make_organization, add_displays):
        busy = await make_organization(screen_quota=2)
        quiet = await make_organization(screen_quota=2)
        await add_displays(busy, 2)
        await add_displays(quiet, 1)

        await check_quota(db, quiet.id)
        with pytest.raises(QuotaExceededError):
            await check_quota(db, busy.id)

    async def test_unknown_organization_fails_closed(self, db):
        with pytest.raises(OrganizationNotFoundError) as exc_info:
            await check_quota(db, "does-not-exist")
        assert exc_info.value.status_code == 403

    async def test_missing_organization_id_fails_closed(self, db):
        with pytest.raises(OrganizationNotFoundError):
            await check_quota(db, None)


class TestCheckSubscriptionActive:
    @pytest.mark.parametrize("method", ["GET", "HEAD"])
    async def test_read_only_skips_database(self, method):
        db = AsyncMock()

        await check_subscription_active(db, "any-org", method)
        await check_subscription_active(db, None, method)

        db.execute.assert_not_called()

    async def test_active_organization_passes(self, db, make_organization):
        organization = await make_organization(subscription_status="active")

        await check_subscription_active(db, organization.id, "POST")

    async def test_running_trial_passes(self, db, make_organization):
        organization = await make_organization(
            subscription_status="trial", trial_ends_at=utcnow() + timedelta(days=3)
        )

        await check_subscription_active(db, organization.id, "PUT")

    async def test_expired_trial_denied(self, db, make_organization):
        organization = await make_organization(
            subscription_status="trial", trial_ends_at=utcnow() - timedelta(seconds=1)
        )

        with pytest.raises(SubscriptionInactiveError) as exc_info:
            await check_subscription_active(db, organization.id, "POST")
        assert exc_info.value.details == {"subscription_status": "trial"}

    @pytest.mark.parametrize("status", ["past_due", "suspended", "canceled"])
    async def test_inactive_statuses_denied_for_mutations(self, db, make_organization, status):
        organization = await make_organization(subscription_status=status)

        with pytest.raises(SubscriptionInactiveError):
            await check_subscription_active(db, organization.id, "DELETE")

    async def test_inactive_organization_may_still_read(self, db, make_organization):
        organization = await make_organization(subscription_status="canceled")

        await check_subscription_active(db, organization.id, "GET")

    async def test_unknown_organization_fails_closed(self, db):
        with pytest.raises(OrganizationNotFoundError):
            await check_subscription_active(db, "does-not-exist", "POST")
