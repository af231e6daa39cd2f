"""
Offset pagination for admin listings.

Admin screens page through bounded result sets (audit trail, organizations),
so plain page/limit offsets are sufficient here.
"""

import logging
import math
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

logger = logging.getLogger(__name__)


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for `total` rows; an empty result has zero pages."""
    if total <= 0:
        return 0
    return math.ceil(total / limit)


async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> dict[str, Any]:
    """
    Run `stmt` for one page and count the full result set.

    Args:
        db: Session to execute against
        stmt: Filtered and ordered select over a single entity
        page: 1-based page number
        limit: Rows per page

    Returns:
        {"data": [...], "total": int, "page": int, "total_pages": int}
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    data = list(result.scalars().all())

    logger.debug("paginate: page=%d limit=%d total=%d", page, limit, total)
    return {
        "data": data,
        "total": total,
        "page": page,
        "total_pages": total_pages(total, limit),
    }
