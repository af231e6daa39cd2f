"""
Organization model: the tenant whose entitlements the guards evaluate.

Suspension is modelled as a typed state transition: the status in force
before suspension lives in `previous_status` so unsuspend can restore it.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from signage_billing.database import Base


class SubscriptionStatus(str, enum.Enum):
    trial = "trial"
    active = "active"
    past_due = "past_due"
    suspended = "suspended"
    canceled = "canceled"


UNLIMITED_QUOTA = -1


def _new_id() -> str:
    return str(uuid.uuid4())


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    billing_email = Column(String(255), nullable=True)
    country = Column(String(2), nullable=True)

    subscription_tier = Column(String(100), nullable=False, default="free")  # Plan.slug
    subscription_status = Column(String(20), nullable=False, default=SubscriptionStatus.trial.value)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    screen_quota = Column(Integer, nullable=False, default=5)  # -1 = unlimited

    # Suspension snapshot; set together by suspend(), cleared together by unsuspend()
    previous_status = Column(String(20), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    suspension_reason = Column(Text, nullable=True)

    # Append-only list of {id, note, added_by, added_at}
    admin_notes = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    displays = relationship("Display", back_populates="organization", lazy="raise", passive_deletes=True)

    __table_args__ = (
        Index("idx_org_status", "subscription_status"),
        Index("idx_org_tier", "subscription_tier"),
    )


class Display(Base):
    """A screen registered to an organization; counted against `screen_quota`."""

    __tablename__ = "displays"

    id = Column(String(36), primary_key=True, default=_new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    organization = relationship("Organization", back_populates="displays", lazy="raise")
