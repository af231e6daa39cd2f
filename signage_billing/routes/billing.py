"""
Tenant Billing Routes

GET  /api/v1/billing/plans                → public, active catalog
POST /api/v1/billing/promotions/validate  → can my organization use this code?
POST /api/v1/billing/promotions/redeem    → record a redemption at checkout

The organization is always the caller's own, taken from the bearer token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, get_current_principal
from signage_billing.database import get_db
from signage_billing.entitlements.dependencies import require_active_subscription
from signage_billing.exceptions import OrganizationNotFoundError
from signage_billing.schemas.plan import PlanResponse
from signage_billing.schemas.promotion import RedemptionResponse, ValidationResult
from signage_billing.services.plan_service import PlanService
from signage_billing.services.promotion_service import PromotionService

router = APIRouter(prefix="/billing", tags=["Billing"])


class CheckoutCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    plan_id: Optional[str] = None


class CheckoutRedeemRequest(BaseModel):
    code: str = Field(..., min_length=1)
    discount_applied: float = Field(..., ge=0)


def _organization_of(principal: Principal) -> str:
    if not principal.organization_id:
        raise OrganizationNotFoundError()
    return principal.organization_id


@router.get("/plans", response_model=list[PlanResponse])
async def list_public_plans(db: AsyncSession = Depends(get_db)):
    return await PlanService(db).find_active()


@router.post("/promotions/validate", response_model=ValidationResult)
async def validate_code(
    payload: CheckoutCodeRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await PromotionService(db).validate(payload.code, payload.plan_id, _organization_of(principal))


@router.post(
    "/promotions/redeem",
    response_model=RedemptionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_active_subscription)],
)
async def redeem_code(
    payload: CheckoutRedeemRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await PromotionService(db).redeem(payload.code, _organization_of(principal), payload.discount_applied)
