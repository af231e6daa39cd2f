"""
Admin Organization Routes (super admin only)

GET    /api/v1/admin/organizations                     → search / filter / page
GET    /api/v1/admin/organizations/{id}                → one organization
PATCH  /api/v1/admin/organizations/{id}                → admin edit
POST   /api/v1/admin/organizations/{id}/tier           → move to a plan
POST   /api/v1/admin/organizations/{id}/extend-trial   → extend the trial
POST   /api/v1/admin/organizations/{id}/suspend        → suspend
POST   /api/v1/admin/organizations/{id}/unsuspend      → restore prior status
POST   /api/v1/admin/organizations/{id}/notes          → add an internal note
DELETE /api/v1/admin/organizations/{id}                → GDPR erasure
GET    /api/v1/admin/organizations/{id}/stats          → usage statistics
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, require_super_admin
from signage_billing.database import get_db
from signage_billing.routes.audit_log import audit_admin_request
from signage_billing.schemas.organization import (
    AddAdminNote,
    AdminNoteResult,
    ErasureResult,
    ExtendTrial,
    OrganizationFilters,
    OrganizationPage,
    OrganizationResponse,
    OrganizationStats,
    OrganizationUpdate,
    SuspendOrganization,
    TierChange,
)
from signage_billing.services.organization_admin_service import OrganizationAdminService

router = APIRouter(prefix="/admin/organizations", tags=["Admin Organizations"])


@router.get("", response_model=OrganizationPage)
async def list_organizations(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    subscription_tier: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    sort_by: Literal["created_at", "name", "screen_quota"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    filters = OrganizationFilters(
        search=search,
        status=status,
        subscription_tier=subscription_tier,
        skip=skip,
        take=take,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await OrganizationAdminService(db).find_all(filters)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await OrganizationAdminService(db).find_one(organization_id)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    payload: OrganizationUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    organization = OrganizationResponse.model_validate(
        await OrganizationAdminService(db).update(organization_id, payload)
    )
    changes = payload.model_dump(mode="json", exclude_unset=True)
    await audit_admin_request(db, request, admin, "organization.update", "organization", organization_id, changes)
    return organization


@router.post("/{organization_id}/tier", response_model=OrganizationResponse)
async def change_tier(
    organization_id: str,
    payload: TierChange,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    service = OrganizationAdminService(db)
    previous_tier = (await service.find_one(organization_id)).subscription_tier
    organization = OrganizationResponse.model_validate(
        await service.change_tier(organization_id, payload.plan_slug)
    )
    await audit_admin_request(
        db,
        request,
        admin,
        "organization.tier_change",
        "organization",
        organization_id,
        {"from": previous_tier, "to": organization.subscription_tier, "screen_quota": organization.screen_quota},
    )
    return organization


@router.post("/{organization_id}/extend-trial", response_model=OrganizationResponse)
async def extend_trial(
    organization_id: str,
    payload: ExtendTrial,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    organization = OrganizationResponse.model_validate(
        await OrganizationAdminService(db).extend_trial(organization_id, payload.days)
    )
    await audit_admin_request(
        db,
        request,
        admin,
        "organization.extend_trial",
        "organization",
        organization_id,
        {"days": payload.days, "trial_ends_at": organization.trial_ends_at.isoformat()},
    )
    return organization


@router.post("/{organization_id}/suspend", response_model=OrganizationResponse)
async def suspend_organization(
    organization_id: str,
    payload: SuspendOrganization,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    organization = OrganizationResponse.model_validate(
        await OrganizationAdminService(db).suspend(organization_id, payload.reason)
    )
    await audit_admin_request(
        db,
        request,
        admin,
        "organization.suspend",
        "organization",
        organization_id,
        {"reason": payload.reason, "previous_status": organization.previous_status},
    )
    return organization


@router.post("/{organization_id}/unsuspend", response_model=OrganizationResponse)
async def unsuspend_organization(
    organization_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    organization = OrganizationResponse.model_validate(
        await OrganizationAdminService(db).unsuspend(organization_id)
    )
    await audit_admin_request(
        db,
        request,
        admin,
        "organization.unsuspend",
        "organization",
        organization_id,
        {"restored_status": organization.subscription_status},
    )
    return organization


@router.post("/{organization_id}/notes", response_model=AdminNoteResult, status_code=status.HTTP_201_CREATED)
async def add_admin_note(
    organization_id: str,
    payload: AddAdminNote,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    result = await OrganizationAdminService(db).add_note(organization_id, payload.note, admin.user_id)
    response = AdminNoteResult(
        organization=OrganizationResponse.model_validate(result["organization"]),
        note=result["note"],
    )
    await audit_admin_request(
        db,
        request,
        admin,
        "organization.add_note",
        "organization",
        organization_id,
        {"note_id": response.note.id},
    )
    return response


@router.delete("/{organization_id}", response_model=ErasureResult)
async def erase_organization(
    organization_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    """GDPR erasure. Irreversible; the audit trail keeps a record of it."""
    result = await OrganizationAdminService(db).erase(organization_id)
    await audit_admin_request(db, request, admin, "organization.delete", "organization", organization_id, result)
    return result


@router.get("/{organization_id}/stats", response_model=OrganizationStats)
async def organization_stats(
    organization_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
):
    return await OrganizationAdminService(db).get_stats(organization_id)
