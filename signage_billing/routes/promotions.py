"""
Admin Promotion Routes (super admin only)

GET    /api/v1/admin/promotions                      → all promotions
POST   /api/v1/admin/promotions                      → create
POST   /api/v1/admin/promotions/validate             → dry-run a code
POST   /api/v1/admin/promotions/bulk-generate        → candidate codes
GET    /api/v1/admin/promotions/{id}                 → one promotion
PUT    /api/v1/admin/promotions/{id}                 → update
DELETE /api/v1/admin/promotions/{id}                 → delete or deactivate
GET    /api/v1/admin/promotions/{id}/redemptions     → redemption ledger
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, require_super_admin
from signage_billing.database import get_db
from signage_billing.routes.audit_log import audit_admin_request
from signage_billing.schemas.promotion import (
    BulkGenerateRequest,
    BulkGenerateResponse,
    PromotionCreate,
    PromotionDeleteResponse,
    PromotionResponse,
    PromotionUpdate,
    RedemptionResponse,
    ValidatePromotionRequest,
    ValidationResult,
)
from signage_billing.services.promotion_service import PromotionService

router = APIRouter(prefix="/admin/promotions", tags=["Admin Promotions"])


@router.get("", response_model=list[PromotionResponse])
async def list_promotions(
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PromotionService(db).find_all()


@router.post("", response_model=PromotionResponse, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    payload: PromotionCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    if payload.created_by is None:
        payload = payload.model_copy(update={"created_by": admin.user_id})
    promotion = PromotionResponse.model_validate(await PromotionService(db).create(payload))
    await audit_admin_request(
        db, request, admin, "promotion.create", "promotion", promotion.id, {"code": promotion.code}
    )
    return promotion


@router.post("/validate", response_model=ValidationResult)
async def validate_promotion(
    payload: ValidatePromotionRequest,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PromotionService(db).validate(payload.code, payload.plan_id, payload.organization_id)


@router.post("/bulk-generate", response_model=BulkGenerateResponse)
async def bulk_generate_codes(
    payload: BulkGenerateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
) -> BulkGenerateResponse:
    """Returns fresh, collision-free codes. Nothing is persisted."""
    codes = await PromotionService(db).bulk_generate(payload.prefix, payload.count)
    await audit_admin_request(
        db,
        request,
        admin,
        "promotion.bulk_generate",
        "promotion",
        None,
        {"prefix": payload.prefix, "requested": payload.count, "generated": len(codes)},
    )
    return BulkGenerateResponse(codes=codes, requested=payload.count, generated=len(codes))


@router.get("/{promotion_id}", response_model=PromotionResponse)
async def get_promotion(
    promotion_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PromotionService(db).find_one(promotion_id)


@router.put("/{promotion_id}", response_model=PromotionResponse)
async def update_promotion(
    promotion_id: str,
    payload: PromotionUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    promotion = PromotionResponse.model_validate(await PromotionService(db).update(promotion_id, payload))
    changes = sorted(payload.model_dump(exclude_unset=True))
    await audit_admin_request(db, request, admin, "promotion.update", "promotion", promotion.id, {"fields": changes})
    return promotion


@router.delete("/{promotion_id}", response_model=PromotionDeleteResponse)
async def delete_promotion(
    promotion_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
) -> PromotionDeleteResponse:
    """Hard delete when unused; a redeemed promotion is deactivated instead."""
    result = await PromotionService(db).delete(promotion_id)
    await audit_admin_request(db, request, admin, "promotion.delete", "promotion", promotion_id, dict(result))
    return PromotionDeleteResponse(**result)


@router.get("/{promotion_id}/redemptions", response_model=list[RedemptionResponse])
async def list_redemptions(
    promotion_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PromotionService(db).get_redemptions(promotion_id)
