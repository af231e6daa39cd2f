"""
FastAPI dependencies attaching the entitlement guards to routes.

Declare them in a route's `dependencies=[...]`; FastAPI resolves them before
the handler body runs and a raised denial short-circuits the handler:

    @router.post("/", dependencies=[Depends(require_active_subscription),
                                    Depends(require_quota(QuotaDimension.screen))])
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.auth import Principal, get_current_principal
from signage_billing.database import get_db
from signage_billing.entitlements.guards import QuotaDimension, check_quota, check_subscription_active


async def require_active_subscription(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> None:
    await check_subscription_active(db, principal.organization_id, request.method)


def require_quota(dimension: QuotaDimension | str):
    dimension = QuotaDimension(dimension)

    async def checker(
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db),
    ) -> None:
        await check_quota(db, principal.organization_id, dimension)

    return checker
