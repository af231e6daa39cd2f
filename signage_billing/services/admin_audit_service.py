"""
Admin Audit Service

Append-only compliance trail of administrative actions. The only write is
log(); there is no update or delete.

Admin routes record an action only after their own write has committed, via
record_admin_action(). That call is best-effort: an audit failure is logged
and never undoes, or fails, the business operation that preceded it.
"""

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signage_billing.config import settings
from signage_billing.exceptions import InvalidArgumentError
from signage_billing.models.admin_audit_log import AdminAuditLogEntry
from signage_billing.schemas.audit import AuditLogFilters
from signage_billing.utils.clock import as_utc, utcnow
from signage_billing.utils.pagination import paginate

logger = logging.getLogger(__name__)


def validate_details(details: dict[str, Any] | None) -> None:
    """Raise InvalidArgumentError unless details are JSON-serialisable."""
    if details:
        try:
            json.dumps(details)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Audit details must be JSON-serializable: {e}", field="details") from e


class AdminAuditService:
    """Writes and queries AdminAuditLogEntry rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        admin_user_id: str,
        action: str,
        target_type: str | None = None,
        target_id: str | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AdminAuditLogEntry:
        """Append one immutable entry and return it."""
        validate_details(details)

        entry = AdminAuditLogEntry(
            admin_user_id=admin_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utcnow(),
        )
        self.db.add(entry)
        await self.db.commit()

        logger.info(f"Admin action recorded: {action} by {admin_user_id} on {target_type}:{target_id}")
        return entry

    async def find_all(self, filters: AuditLogFilters) -> dict[str, Any]:
        """
        Filtered, paginated listing, newest first.

        Date bounds are inclusive. The page size defaults to
        settings.audit_page_size and is capped at settings.audit_max_page_size.
        """
        limit = filters.limit or settings.audit_page_size
        limit = min(limit, settings.audit_max_page_size)

        stmt = select(AdminAuditLogEntry)
        if filters.admin_user_id:
            stmt = stmt.where(AdminAuditLogEntry.admin_user_id == filters.admin_user_id)
        if filters.action:
            stmt = stmt.where(AdminAuditLogEntry.action == filters.action)
        if filters.target_type:
            stmt = stmt.where(AdminAuditLogEntry.target_type == filters.target_type)
        if filters.target_id:
            stmt = stmt.where(AdminAuditLogEntry.target_id == filters.target_id)
        if filters.start_date:
            stmt = stmt.where(AdminAuditLogEntry.created_at >= as_utc(filters.start_date))
        if filters.end_date:
            stmt = stmt.where(AdminAuditLogEntry.created_at <= as_utc(filters.end_date))

        stmt = stmt.order_by(AdminAuditLogEntry.created_at.desc(), AdminAuditLogEntry.id)
        return await paginate(self.db, stmt, filters.page, limit)


async def record_admin_action(
    db: AsyncSession,
    admin_user_id: str,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AdminAuditLogEntry | None:
    """
    Best-effort audit write, called after the triggering write has committed.

    Returns the entry, or None when the audit write failed.
    """
    try:
        return await AdminAuditService(db).log(
            admin_user_id=admin_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except Exception as e:
        logger.error(f"Failed to record admin action {action} by {admin_user_id}: {e}")
        await db.rollback()
        return None
