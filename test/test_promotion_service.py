"""
Tests for the promotion service

Covers creation rules, the ordered validation reasons, redemption
bookkeeping, deletion and bulk code generation.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from signage_billing.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from signage_billing.models.promotion import Promotion, PromotionRedemption
from signage_billing.schemas.promotion import PromotionCreate, PromotionUpdate
from signage_billing.services.promotion_service import (
    PROMOTION_ALREADY_USED,
    PROMOTION_EXPIRED,
    PROMOTION_INACTIVE,
    PROMOTION_LIMIT_REACHED,
    PROMOTION_NOT_FOUND,
    PROMOTION_NOT_STARTED,
    PROMOTION_PLAN_INELIGIBLE,
    PromotionService,
    normalize_code,
    validate_discount_config,
)
from signage_billing.utils.clock import utcnow


def promotion_payload(**overrides) -> PromotionCreate:
    values = {
        "code": "spring25",
        "name": "Spring sale",
        "discount_type": "percentage",
        "discount_value": 25,
        "starts_at": utcnow() - timedelta(hours=1),
    }
    values.update(overrides)
    return PromotionCreate(**values)


async def count_promotions(db) -> int:
    return (await db.execute(select(func.count(Promotion.id)))).scalar_one()


class TestDiscountConfig:
    def test_percentage_bounds(self):
        validate_discount_config("percentage", 0, None)
        validate_discount_config("percentage", 100, None)

        with pytest.raises(InvalidArgumentError):
            validate_discount_config("percentage", 100.5, None)
        with pytest.raises(InvalidArgumentError):
            validate_discount_config("percentage", -1, None)

    def test_fixed_amount_requires_currency(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_discount_config("fixed_amount", 1000, None)
        assert exc_info.value.details["field"] == "currency"

        validate_discount_config("fixed_amount", 1000, "USD")

    def test_free_months_rejects_negative(self):
        validate_discount_config("free_months", 3, None)
        with pytest.raises(InvalidArgumentError):
            validate_discount_config("free_months", -2, None)

    def test_normalize_code(self):
        assert normalize_code("  launch50 ") == "LAUNCH50"


class TestCreatePromotion:
    async def test_code_is_upper_cased(self, db):
        promotion = await PromotionService(db).create(promotion_payload(code="summer-deal"))

        assert promotion.code == "SUMMER-DEAL"
        assert promotion.current_redemptions == 0
        assert promotion.plan_ids == []

    async def test_duplicate_code_conflicts_case_insensitively(self, db):
        service = PromotionService(db)
        await service.create(promotion_payload(code="WELCOME"))

        with pytest.raises(ConflictError):
            await service.create(promotion_payload(code="welcome"))

    async def test_fixed_amount_without_currency_writes_nothing(self, db):
        payload = promotion_payload(code="FLAT10", discount_type="fixed_amount", discount_value=1000)

        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).create(payload)

        assert await count_promotions(db) == 0

    async def test_percentage_over_100_rejected(self, db):
        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).create(promotion_payload(discount_value=150))
        assert await count_promotions(db) == 0

    async def test_expiry_must_follow_start(self, db):
        now = utcnow()
        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).create(promotion_payload(starts_at=now, expires_at=now - timedelta(days=1)))

    async def test_plan_scope_is_stored(self, db, make_plan):
        pro = await make_plan(slug="pro")
        promotion = await PromotionService(db).create(promotion_payload(plan_ids=[pro.id]))

        assert promotion.plan_ids == [pro.id]

    async def test_unknown_plan_in_scope_rejected(self, db):
        with pytest.raises(NotFoundError):
            await PromotionService(db).create(promotion_payload(plan_ids=["missing-plan"]))
        assert await count_promotions(db) == 0

    async def test_find_by_code_ignores_case(self, db):
        service = PromotionService(db)
        promotion = await service.create(promotion_payload(code="WELCOME"))

        assert (await service.find_by_code(" welcome ")).id == promotion.id
        with pytest.raises(NotFoundError):
            await service.find_by_code("NOPE")


class TestUpdatePromotion:
    async def test_switching_to_fixed_amount_needs_currency(self, db):
        service = PromotionService(db)
        promotion = await service.create(promotion_payload(code="SWITCH", discount_value=10))

        with pytest.raises(InvalidArgumentError):
            await service.update(promotion.id, PromotionUpdate(discount_type="fixed_amount"))

        updated = await service.update(promotion.id, PromotionUpdate(discount_type="fixed_amount", currency="usd"))
        assert updated.discount_type == "fixed_amount"
        assert updated.currency == "USD"

    async def test_value_checked_against_stored_type(self, db):
        service = PromotionService(db)
        promotion = await service.create(promotion_payload(code="PCT"))

        with pytest.raises(InvalidArgumentError):
            await service.update(promotion.id, PromotionUpdate(discount_value=120))

    async def test_clearing_max_redemptions(self, db):
        service = PromotionService(db)
        promotion = await service.create(promotion_payload(code="CAPPED", max_redemptions=5))

        updated = await service.update(promotion.id, PromotionUpdate(max_redemptions=None))
        assert updated.max_redemptions is None

    async def test_replacing_plan_scope(self, db, make_plan):
        basic = await make_plan(slug="basic")
        pro = await make_plan(slug="pro")
        service = PromotionService(db)
        promotion = await service.create(promotion_payload(code="SCOPED", plan_ids=[basic.id]))

        updated = await service.update(promotion.id, PromotionUpdate(plan_ids=[pro.id]))
        assert updated.plan_ids == [pro.id]

        cleared = await service.update(promotion.id, PromotionUpdate(plan_ids=[]))
        assert cleared.plan_ids == []


class TestValidatePromotion:
    async def test_unknown_code(self, db):
        result = await PromotionService(db).validate("NOPE")
        assert result.valid is False
        assert result.error == PROMOTION_NOT_FOUND

    async def test_inactive(self, db, make_promotion):
        await make_promotion(code="OFF", is_active=False)
        result = await PromotionService(db).validate("OFF")
        assert result.error == PROMOTION_INACTIVE

    async def test_not_started(self, db, make_promotion):
        await make_promotion(code="SOON", starts_at=utcnow() + timedelta(days=1))
        result = await PromotionService(db).validate("SOON")
        assert result.error == PROMOTION_NOT_STARTED

    async def test_expired(self, db, make_promotion):
        await make_promotion(
            code="OLD", starts_at=utcnow() - timedelta(days=10), expires_at=utcnow() - timedelta(days=1)
        )
        result = await PromotionService(db).validate("OLD")
        assert result.error == PROMOTION_EXPIRED

    async def test_launch50_limit_reached(self, db, make_promotion):
        await make_promotion(
            code="LAUNCH50",
            discount_type="percentage",
            discount_value=50,
            max_redemptions=100,
            current_redemptions=100,
        )

        result = await PromotionService(db).validate("LAUNCH50")

        assert result.model_dump() == {
            "valid": False,
            "promotion": None,
            "error": "Promotion redemption limit reached",
        }
        assert result.error == PROMOTION_LIMIT_REACHED

    async def test_already_used_by_organization(self, db, make_promotion, organization):
        promotion = await make_promotion(code="ONCE")
        db.add(PromotionRedemption(promotion_id=promotion.id, organization_id=organization.id, discount_applied=5))
        await db.commit()

        result = await PromotionService(db).validate("ONCE", organization_id=organization.id)
        assert result.error == PROMOTION_ALREADY_USED

    async def test_plan_not_in_scope(self, db, make_promotion, make_plan):
        basic = await make_plan(slug="basic")
        pro = await make_plan(slug="pro")
        await make_promotion(code="PROONLY", applicable_plans=[pro])

        result = await PromotionService(db).validate("PROONLY", plan_id=basic.id)
        assert result.error == PROMOTION_PLAN_INELIGIBLE

        result = await PromotionService(db).validate("PROONLY", plan_id=pro.id)
        assert result.valid is True

    async def test_unscoped_promotion_applies_to_any_plan(self, db, make_promotion, make_plan):
        plan = await make_plan()
        await make_promotion(code="ANYPLAN")

        result = await PromotionService(db).validate("ANYPLAN", plan_id=plan.id)
        assert result.valid is True

    async def test_first_failing_rule_wins(self, db, make_promotion):
        """Inactive and expired and exhausted: inactive is reported"""
        await make_promotion(
            code="BROKEN",
            is_active=False,
            expires_at=utcnow() - timedelta(days=1),
            starts_at=utcnow() - timedelta(days=5),
            max_redemptions=1,
            current_redemptions=1,
        )
        result = await PromotionService(db).validate("BROKEN")
        assert result.error == PROMOTION_INACTIVE

    async def test_valid_returns_discount(self, db, make_promotion):
        promotion = await make_promotion(code="FLAT5", discount_type="fixed_amount", discount_value=500, currency="USD")

        result = await PromotionService(db).validate("flat5")

        assert result.valid is True
        assert result.error is None
        assert result.promotion.id == promotion.id
        assert result.promotion.code == "FLAT5"
        assert result.promotion.discount_type == "fixed_amount"
        assert result.promotion.currency == "USD"

    async def test_validate_has_no_side_effects(self, db, make_promotion, organization):
        promotion = await make_promotion(code="LOOK", max_redemptions=10)
        service = PromotionService(db)

        for _ in range(3):
            await service.validate("LOOK", organization_id=organization.id)

        refreshed = await service.find_one(promotion.id)
        assert refreshed.current_redemptions == 0
        assert await service.get_redemptions(promotion.id) == []


class TestRedeemPromotion:
    async def test_redeem_records_and_increments(self, db, make_promotion, organization):
        promotion = await make_promotion(code="SAVE20", max_redemptions=10)
        service = PromotionService(db)

        redemption = await service.redeem("save20", organization.id, 12.5)

        assert redemption.promotion_id == promotion.id
        assert redemption.organization_id == organization.id
        assert redemption.discount_applied == 12.5
        refreshed = await service.find_one(promotion.id)
        assert refreshed.current_redemptions == 1

    async def test_second_redeem_by_same_customer_refused(self, db, make_promotion, organization):
        await make_promotion(code="SINGLE")
        service = PromotionService(db)
        await service.redeem("SINGLE", organization.id, 10)

        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.redeem("SINGLE", organization.id, 10)
        assert exc_info.value.message == PROMOTION_ALREADY_USED

    async def test_exhausted_promotion_refused_without_writes(self, db, make_promotion, organization):
        promotion = await make_promotion(code="GONE", max_redemptions=2, current_redemptions=2)
        service = PromotionService(db)

        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.redeem("GONE", organization.id, 10)

        assert exc_info.value.message == PROMOTION_LIMIT_REACHED
        refreshed = await service.find_one(promotion.id)
        assert refreshed.current_redemptions == 2
        assert await service.get_redemptions(promotion.id) == []

    async def test_negative_discount_applied_rejected(self, db, make_promotion, organization):
        await make_promotion(code="NEG")
        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).redeem("NEG", organization.id, -1)

    async def test_increment_is_conditional_on_cap(self, db, make_promotion, organization):
        """A cap reached between validation and the write is still enforced"""
        promotion = await make_promotion(code="RACE", max_redemptions=1)
        promotion_id, organization_id = promotion.id, organization.id
        service = PromotionService(db)

        stale = await service.validate("RACE", organization_id=organization_id)
        assert stale.valid is True

        # Another checkout takes the last slot after validation passed
        promotion.current_redemptions = 1
        await db.commit()
        fresh = await service.validate("RACE", organization_id=organization_id)

        with patch.object(service, "validate", AsyncMock(side_effect=[stale, fresh])):
            with pytest.raises(InvalidArgumentError) as exc_info:
                await service.redeem("RACE", organization_id, 10)

        assert exc_info.value.message == PROMOTION_LIMIT_REACHED
        assert (await service.find_one(promotion_id)).current_redemptions == 1
        assert await service.get_redemptions(promotion_id) == []

    async def test_lost_race_reports_customer_allowance_first(self, db, make_promotion, organization):
        """A customer who already redeemed is told so even when re-validation looks clean"""
        promotion = await make_promotion(code="ONCE", max_redemptions=1)
        promotion_id, organization_id = promotion.id, organization.id
        service = PromotionService(db)

        stale = await service.validate("ONCE", organization_id=organization_id)
        assert stale.valid is True

        # The same customer's concurrent checkout committed first
        db.add(
            PromotionRedemption(
                promotion_id=promotion_id,
                organization_id=organization_id,
                discount_applied=5,
                redeemed_at=utcnow(),
            )
        )
        promotion.current_redemptions = 1
        await db.commit()

        with patch.object(service, "validate", AsyncMock(return_value=stale)):
            with pytest.raises(InvalidArgumentError) as exc_info:
                await service.redeem("ONCE", organization_id, 5)

        assert exc_info.value.message == PROMOTION_ALREADY_USED
        assert (await service.find_one(promotion_id)).current_redemptions == 1
        assert len(await service.get_redemptions(promotion_id)) == 1


class TestDeletePromotion:
    async def test_unused_promotion_is_deleted(self, db, make_promotion):
        promotion = await make_promotion(code="UNUSED")
        promotion_id = promotion.id

        result = await PromotionService(db).delete(promotion_id)

        assert result == {"id": promotion_id, "deleted": True, "deactivated": False}
        with pytest.raises(NotFoundError):
            await PromotionService(db).find_one(promotion_id)

    async def test_redeemed_promotion_is_deactivated(self, db, make_promotion, organization):
        promotion = await make_promotion(code="USED", max_per_customer=3)
        service = PromotionService(db)
        await service.redeem("USED", organization.id, 5)

        result = await service.delete(promotion.id)

        assert result["deleted"] is False
        assert result["deactivated"] is True
        refreshed = await service.find_one(promotion.id)
        assert refreshed.is_active is False
        assert len(await service.get_redemptions(promotion.id)) == 1

    async def test_delete_unknown(self, db):
        with pytest.raises(NotFoundError):
            await PromotionService(db).delete("missing")


class TestBulkGenerate:
    async def test_generates_prefixed_codes(self, db):
        codes = await PromotionService(db).bulk_generate("xmas", 20)

        assert len(codes) == 20
        assert len(set(codes)) == 20
        for code in codes:
            prefix, suffix = code.split("-")
            assert prefix == "XMAS"
            assert len(suffix) == 8
            assert suffix == suffix.upper()

    async def test_taken_codes_are_dropped(self, db, make_promotion):
        await make_promotion(code="XMAS-AAAAAAAA")

        token_hex = patch(
            "signage_billing.services.promotion_service.secrets.token_hex", side_effect=["aaaaaaaa", "bbbbbbbb"]
        )
        with token_hex:
            codes = await PromotionService(db).bulk_generate("XMAS", 2)

        assert codes == ["XMAS-BBBBBBBB"]

    async def test_nothing_is_persisted(self, db):
        await PromotionService(db).bulk_generate("TMP", 5)
        assert await count_promotions(db) == 0

    @pytest.mark.parametrize("count", [0, -3, 1001])
    async def test_count_bounds(self, db, count):
        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).bulk_generate("BAD", count)

    async def test_blank_prefix_rejected(self, db):
        with pytest.raises(InvalidArgumentError):
            await PromotionService(db).bulk_generate("   ", 3)
