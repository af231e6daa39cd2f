"""
Admin Plan Routes (super admin only)

GET    /api/v1/admin/plans                  → full catalog, sort order
GET    /api/v1/admin/plans/{id}             → one plan
POST   /api/v1/admin/plans                  → create
PUT    /api/v1/admin/plans/reorder          → atomic reorder
PUT    /api/v1/admin/plans/{id}             → update
DELETE /api/v1/admin/plans/{id}             → soft delete
POST   /api/v1/admin/plans/{id}/duplicate   → inactive, private copy
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, require_super_admin
from signage_billing.database import get_db
from signage_billing.routes.audit_log import audit_admin_request
from signage_billing.schemas.plan import PlanCreate, PlanResponse, PlanUpdate, ReorderPlans
from signage_billing.services.plan_service import PlanService

router = APIRouter(prefix="/admin/plans", tags=["Admin Plans"])


@router.get("", response_model=list[PlanResponse])
async def list_plans(
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PlanService(db).find_all()


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(
    plan_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await PlanService(db).find_one(plan_id)


@router.post("", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    plan = PlanResponse.model_validate(await PlanService(db).create(payload))
    await audit_admin_request(db, request, admin, "plan.create", "plan", plan.id, {"slug": plan.slug})
    return plan


# Declared before /{plan_id} so "reorder" is not captured as an id
@router.put("/reorder", response_model=list[PlanResponse])
async def reorder_plans(
    payload: ReorderPlans,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    plan_ids = [item.id for item in payload.plans]
    plans = [PlanResponse.model_validate(plan) for plan in await PlanService(db).reorder(plan_ids)]
    await audit_admin_request(db, request, admin, "plan.reorder", "plan", None, {"plan_ids": plan_ids})
    return plans


@router.put("/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    plan = PlanResponse.model_validate(await PlanService(db).update(plan_id, payload))
    changes = sorted(payload.model_dump(exclude_unset=True))
    await audit_admin_request(db, request, admin, "plan.update", "plan", plan.id, {"fields": changes})
    return plan


@router.delete("/{plan_id}", response_model=PlanResponse)
async def delete_plan(
    plan_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    """Soft delete. The plan is deactivated, never removed."""
    plan = PlanResponse.model_validate(await PlanService(db).delete(plan_id))
    await audit_admin_request(db, request, admin, "plan.delete", "plan", plan.id, {"slug": plan.slug})
    return plan


@router.post("/{plan_id}/duplicate", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_plan(
    plan_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    copy = PlanResponse.model_validate(await PlanService(db).duplicate(plan_id))
    await audit_admin_request(
        db, request, admin, "plan.duplicate", "plan", copy.id, {"source_id": plan_id, "slug": copy.slug}
    )
    return copy
