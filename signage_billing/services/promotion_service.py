"""
Promotion Service

Discount codes with eligibility rules and redemption bookkeeping.

A promotion has no stored lifecycle state. Whether it is pending, active,
expired, exhausted or disabled is recomputed by validate() from the current
row and the current time on every call.

Redemption is the one write in the billing core that needs a transactional
guarantee: the redemption row and the counter increment commit together, and
the increment is a conditional UPDATE so concurrent redeemers cannot push
current_redemptions past max_redemptions, nor one organization past
max_per_customer.
"""

import logging
import secrets
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.config import settings
from signage_billing.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from signage_billing.models.plan import Plan
from signage_billing.models.promotion import DiscountType, Promotion, PromotionRedemption
from signage_billing.schemas.promotion import PromotionCreate, PromotionDiscount, PromotionUpdate, ValidationResult
from signage_billing.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

# Validation failure reasons, in evaluation order
PROMOTION_NOT_FOUND = "Promotion code not found"
PROMOTION_INACTIVE = "Promotion is no longer active"
PROMOTION_NOT_STARTED = "Promotion has not started yet"
PROMOTION_EXPIRED = "Promotion has expired"
PROMOTION_LIMIT_REACHED = "Promotion redemption limit reached"
PROMOTION_ALREADY_USED = "You have already used this promotion"
PROMOTION_PLAN_INELIGIBLE = "Promotion is not valid for this plan"

DISCOUNT_FIELDS = ("discount_type", "discount_value", "currency")

# Update fields an admin may clear by sending null
NULLABLE_UPDATE_FIELDS = {"description", "currency", "max_redemptions", "min_purchase_amount", "expires_at", "metadata"}


def normalize_code(code: str) -> str:
    return code.strip().upper()


def validate_discount_config(discount_type: DiscountType | str, discount_value: float, currency: str | None) -> None:
    """
    Reject an inconsistent discount before anything is written.

    percentage:   0 <= value <= 100
    fixed_amount: currency required
    all types:    value >= 0
    """
    discount_type = DiscountType(discount_type)

    if discount_type is DiscountType.percentage and not 0 <= discount_value <= 100:
        raise InvalidArgumentError("Percentage discount must be between 0 and 100", field="discount_value")

    if discount_type is DiscountType.fixed_amount and not currency:
        raise InvalidArgumentError("Currency is required for fixed amount discounts", field="currency")

    if discount_value < 0:
        raise InvalidArgumentError("Discount value must be non-negative", field="discount_value")


class PromotionService:
    """Service for promotion codes and their redemptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Queries ───────────────────────────────────────────────────────────────

    async def find_all(self) -> list[Promotion]:
        result = await self.db.execute(select(Promotion).order_by(Promotion.created_at.desc()))
        return list(result.scalars().all())

    async def find_one(self, promotion_id: str) -> Promotion:
        result = await self.db.execute(
            select(Promotion).where(Promotion.id == promotion_id).execution_options(populate_existing=True)
        )
        promotion = result.scalars().first()
        if promotion is None:
            raise NotFoundError("Promotion", promotion_id)
        return promotion

    async def find_by_code(self, code: str) -> Promotion:
        promotion = await self._get_by_code(code)
        if promotion is None:
            raise NotFoundError("Promotion", message=f"Promotion with code '{code}' not found")
        return promotion

    async def get_redemptions(self, promotion_id: str) -> list[PromotionRedemption]:
        await self.find_one(promotion_id)
        result = await self.db.execute(
            select(PromotionRedemption)
            .where(PromotionRedemption.promotion_id == promotion_id)
            .order_by(PromotionRedemption.redeemed_at.desc())
        )
        return list(result.scalars().all())

    # ── Admin mutations ───────────────────────────────────────────────────────

    async def create(self, data: PromotionCreate) -> Promotion:
        code = normalize_code(data.code)
        if not code:
            raise InvalidArgumentError("Promotion code must not be blank", field="code")

        if await self._get_by_code(code) is not None:
            raise ConflictError("Promotion", "code", code)

        validate_discount_config(data.discount_type, data.discount_value, data.currency)
        self._validate_window(data.starts_at, data.expires_at)
        plans = await self._load_plans(data.plan_ids or [])

        promotion = Promotion(
            code=code,
            name=data.name,
            description=data.description,
            discount_type=DiscountType(data.discount_type).value,
            discount_value=data.discount_value,
            currency=data.currency.upper() if data.currency else None,
            max_redemptions=data.max_redemptions,
            max_per_customer=data.max_per_customer,
            current_redemptions=0,
            min_purchase_amount=data.min_purchase_amount,
            starts_at=as_utc(data.starts_at),
            expires_at=as_utc(data.expires_at),
            is_active=data.is_active,
            created_by=data.created_by,
            metadata_=data.metadata,
        )
        promotion.applicable_plans = plans
        self.db.add(promotion)
        await self.db.commit()

        logger.info(f"Created promotion: {promotion.code} ({promotion.id})")
        return await self.find_one(promotion.id)

    async def update(self, promotion_id: str, data: PromotionUpdate) -> Promotion:
        promotion = await self.find_one(promotion_id)
        changes = data.model_dump(exclude_unset=True)

        # Discount fields are validated as they will be stored: incoming
        # values merged over the current ones.
        if any(field in changes for field in DISCOUNT_FIELDS):
            validate_discount_config(
                changes.get("discount_type") or promotion.discount_type,
                changes["discount_value"] if changes.get("discount_value") is not None else promotion.discount_value,
                changes["currency"] if "currency" in changes else promotion.currency,
            )

        if "starts_at" in changes or "expires_at" in changes:
            self._validate_window(
                changes.get("starts_at") or promotion.starts_at,
                changes["expires_at"] if "expires_at" in changes else promotion.expires_at,
            )

        plan_ids = changes.pop("plan_ids", None)
        plans = await self._load_plans(plan_ids) if plan_ids is not None else None

        for field, value in changes.items():
            if value is None and field not in NULLABLE_UPDATE_FIELDS:
                continue
            if field == "metadata":
                promotion.metadata_ = value
            elif field == "discount_type":
                promotion.discount_type = DiscountType(value).value
            elif field == "currency":
                promotion.currency = value.upper() if value else None
            elif field in ("starts_at", "expires_at"):
                setattr(promotion, field, as_utc(value))
            else:
                setattr(promotion, field, value)

        if plans is not None:
            promotion.applicable_plans = plans

        await self.db.commit()

        logger.info(f"Updated promotion: {promotion.code} ({promotion.id})")
        return await self.find_one(promotion.id)

    async def delete(self, promotion_id: str) -> dict[str, Any]:
        """
        Remove a promotion that was never redeemed. A redeemed promotion is
        deactivated instead so its redemption ledger stays intact.
        """
        promotion = await self.find_one(promotion_id)

        redemption_count = await self._count_redemptions(promotion.id)
        if redemption_count:
            promotion.is_active = False
            await self.db.commit()
            logger.info(
                f"Deactivated promotion {promotion.code} ({promotion.id}) instead of deleting: "
                f"{redemption_count} redemptions on record"
            )
            return {"id": promotion_id, "deleted": False, "deactivated": True}

        await self.db.delete(promotion)
        await self.db.commit()

        logger.info(f"Deleted promotion: {promotion_id}")
        return {"id": promotion_id, "deleted": True, "deactivated": False}

    async def bulk_generate(self, prefix: str, count: int) -> list[str]:
        """
        Generate `count` candidate codes `PREFIX-XXXXXXXX` and return those not
        already taken.

        Collided slots are dropped, not regenerated, so the result may be
        shorter than `count`.
        """
        prefix = normalize_code(prefix)
        if not prefix:
            raise InvalidArgumentError("Prefix must not be blank", field="prefix")
        if not 1 <= count <= settings.bulk_generate_max:
            raise InvalidArgumentError(
                f"Count must be between 1 and {settings.bulk_generate_max}", field="count"
            )

        codes = [f"{prefix}-{secrets.token_hex(4).upper()}" for _ in range(count)]

        result = await self.db.execute(select(Promotion.code).where(Promotion.code.in_(codes)))
        existing = set(result.scalars().all())
        valid_codes = [code for code in codes if code not in existing]

        logger.info(f"Bulk generated {len(valid_codes)} promotion codes with prefix: {prefix}")
        return valid_codes

    # ── Validation & redemption ───────────────────────────────────────────────

    async def validate(
        self,
        code: str,
        plan_id: str | None = None,
        organization_id: str | None = None,
    ) -> ValidationResult:
        """
        Check whether `code` can be applied right now. Side-effect free.

        The first failing rule decides the error, so the caller always gets
        the most specific actionable reason.
        """
        promotion = await self._get_by_code(code)
        if promotion is None:
            return ValidationResult(valid=False, error=PROMOTION_NOT_FOUND)

        if not promotion.is_active:
            return ValidationResult(valid=False, error=PROMOTION_INACTIVE)

        now = utcnow()
        if now < as_utc(promotion.starts_at):
            return ValidationResult(valid=False, error=PROMOTION_NOT_STARTED)

        if promotion.expires_at is not None and now > as_utc(promotion.expires_at):
            return ValidationResult(valid=False, error=PROMOTION_EXPIRED)

        if promotion.max_redemptions is not None and promotion.current_redemptions >= promotion.max_redemptions:
            return ValidationResult(valid=False, error=PROMOTION_LIMIT_REACHED)

        if organization_id:
            used = await self._count_redemptions(promotion.id, organization_id)
            if used >= promotion.max_per_customer:
                return ValidationResult(valid=False, error=PROMOTION_ALREADY_USED)

        if plan_id and promotion.applicable_plans:
            if plan_id not in promotion.plan_ids:
                return ValidationResult(valid=False, error=PROMOTION_PLAN_INELIGIBLE)

        return ValidationResult(
            valid=True,
            promotion=PromotionDiscount(
                id=promotion.id,
                code=promotion.code,
                discount_type=promotion.discount_type,
                discount_value=promotion.discount_value,
                currency=promotion.currency,
            ),
        )

    async def redeem(self, code: str, organization_id: str, discount_applied: float) -> PromotionRedemption:
        """
        Record one redemption of `code` by `organization_id`.

        The counter increment is conditional on the caps, and the per-customer
        count is taken after the increment has locked the promotion row, so
        concurrent calls cannot exceed max_redemptions or max_per_customer.
        Both writes commit together or not at all.
        """
        if discount_applied < 0:
            raise InvalidArgumentError("Discount applied must be non-negative", field="discount_applied")

        validation = await self.validate(code, organization_id=organization_id)
        if not validation.valid:
            raise InvalidArgumentError(validation.error, details={"code": normalize_code(code)})

        promotion_id = validation.promotion.id
        try:
            claimed = await self.db.execute(
                update(Promotion)
                .where(
                    Promotion.id == promotion_id,
                    Promotion.is_active.is_(True),
                    or_(
                        Promotion.max_redemptions.is_(None),
                        Promotion.current_redemptions < Promotion.max_redemptions,
                    ),
                )
                .values(current_redemptions=Promotion.current_redemptions + 1)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await self.db.rollback()
                raise InvalidArgumentError(
                    await self._refusal_reason(promotion_id, code, organization_id, PROMOTION_LIMIT_REACHED)
                )

            max_per_customer = (
                await self.db.execute(select(Promotion.max_per_customer).where(Promotion.id == promotion_id))
            ).scalar_one()
            used = await self._count_redemptions(promotion_id, organization_id)
            if used >= max_per_customer:
                await self.db.rollback()
                raise InvalidArgumentError(PROMOTION_ALREADY_USED)

            redemption = PromotionRedemption(
                promotion_id=promotion_id,
                organization_id=organization_id,
                discount_applied=discount_applied,
                redeemed_at=utcnow(),
            )
            self.db.add(redemption)
            await self.db.commit()
        except InvalidArgumentError:
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Redeemed promotion {validation.promotion.code} for org {organization_id}, discount: {discount_applied}"
        )
        return redemption

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _get_by_code(self, code: str) -> Promotion | None:
        result = await self.db.execute(
            select(Promotion)
            .where(Promotion.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _count_redemptions(self, promotion_id: str, organization_id: str | None = None) -> int:
        stmt = select(func.count(PromotionRedemption.id)).where(PromotionRedemption.promotion_id == promotion_id)
        if organization_id is not None:
            stmt = stmt.where(PromotionRedemption.organization_id == organization_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def _refusal_reason(self, promotion_id: str, code: str, organization_id: str, default: str) -> str:
        """
        Explain a lost race. The customer's own allowance is checked first: a
        competing redemption by the same customer may have rolled back the
        counter by now, so re-validation alone can report the code as valid.
        """
        max_per_customer = (
            await self.db.execute(select(Promotion.max_per_customer).where(Promotion.id == promotion_id))
        ).scalar_one_or_none()
        if max_per_customer is not None:
            if await self._count_redemptions(promotion_id, organization_id) >= max_per_customer:
                return PROMOTION_ALREADY_USED

        validation = await self.validate(code, organization_id=organization_id)
        return validation.error or default

    async def _load_plans(self, plan_ids: list[str]) -> list[Plan]:
        if not plan_ids:
            return []
        unique_ids = list(dict.fromkeys(plan_ids))
        result = await self.db.execute(select(Plan).where(Plan.id.in_(unique_ids)))
        plans = {plan.id: plan for plan in result.scalars().all()}
        missing = [plan_id for plan_id in unique_ids if plan_id not in plans]
        if missing:
            raise NotFoundError("Plan", missing, message=f"Plans not found: {', '.join(missing)}")
        return [plans[plan_id] for plan_id in unique_ids]

    @staticmethod
    def _validate_window(starts_at, expires_at) -> None:
        if expires_at is not None and starts_at is not None and as_utc(expires_at) <= as_utc(starts_at):
            raise InvalidArgumentError("Promotion must expire after it starts", field="expires_at")
