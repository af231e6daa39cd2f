"""
Admin Audit Log Routes

GET /api/v1/admin/audit-log  → filtered, paginated audit entries (super admin)

Also exposes audit_admin_request(), which admin routes call after their own
write has committed.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, require_super_admin
from signage_billing.database import get_db
from signage_billing.middleware.logging import client_ip
from signage_billing.models.admin_audit_log import AdminAuditLogEntry
from signage_billing.schemas.audit import AuditLogFilters, AuditLogPage
from signage_billing.services.admin_audit_service import AdminAuditService, record_admin_action

router = APIRouter(prefix="/admin/audit-log", tags=["Admin Audit Log"])


async def audit_admin_request(
    db: AsyncSession,
    request: Request,
    admin: Principal,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> AdminAuditLogEntry | None:
    """
    Record an admin action with the caller's IP and user agent.

    A failed audit write rolls the session back and expires loaded instances,
    so routes build their response model before calling this.
    """
    return await record_admin_action(
        db,
        admin_user_id=admin.user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.get("", response_model=AuditLogPage)
async def list_audit_log(
    admin_user_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_super_admin),
) -> AuditLogPage:
    """Newest first. `limit` defaults to 50 and is capped at 100."""
    filters = AuditLogFilters(
        admin_user_id=admin_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return await AdminAuditService(db).find_all(filters)
