"""
Display Routes

GET  /api/v1/displays  → the caller's screens
POST /api/v1/displays  → register a screen (subscription and screen quota enforced)
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, get_current_principal
from signage_billing.database import get_db
from signage_billing.entitlements.dependencies import require_active_subscription, require_quota
from signage_billing.entitlements.guards import QuotaDimension
from signage_billing.exceptions import OrganizationNotFoundError
from signage_billing.models.organization import Display
from signage_billing.schemas.organization import DisplayCreate, DisplayResponse
from signage_billing.utils.clock import utcnow

router = APIRouter(prefix="/displays", tags=["Displays"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[DisplayResponse], dependencies=[Depends(require_active_subscription)])
async def list_displays(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if not principal.organization_id:
        raise OrganizationNotFoundError()
    result = await db.execute(
        select(Display).where(Display.organization_id == principal.organization_id).order_by(Display.created_at)
    )
    return list(result.scalars().all())


@router.post(
    "",
    response_model=DisplayResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_active_subscription), Depends(require_quota(QuotaDimension.screen))],
)
async def create_display(
    payload: DisplayCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    display = Display(organization_id=principal.organization_id, name=payload.name, created_at=utcnow())
    db.add(display)
    await db.commit()
    await db.refresh(display)

    logger.info(f"Registered display {display.id} for org {principal.organization_id}")
    return display
