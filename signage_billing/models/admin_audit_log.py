"""
Admin audit trail. Rows are append-only: nothing in the codebase updates or
deletes them, including organization erasure.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from signage_billing.database import Base


class AdminAuditLogEntry(Base):
    __tablename__ = "admin_audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_user_id = Column(String(36), nullable=False)
    action = Column(String(100), nullable=False)  # e.g. "plan.create"
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_admin_audit_admin_created", "admin_user_id", "created_at"),
        Index("idx_admin_audit_action_created", "action", "created_at"),
        Index("idx_admin_audit_target", "target_type", "target_id"),
    )
