"""
Promotion models: discount codes and their redemption ledger.

A promotion's state (pending, active, expired, exhausted, disabled) is never
stored; PromotionService.validate() derives it from these fields on each call.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from signage_billing.database import Base


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed_amount = "fixed_amount"
    free_months = "free_months"


# Plan scope: a promotion with no rows here applies to every plan
plan_promotions = Table(
    "plan_promotions",
    Base.metadata,
    Column("plan_id", String(36), ForeignKey("plans.id", ondelete="CASCADE"), primary_key=True),
    Column("promotion_id", String(36), ForeignKey("promotions.id", ondelete="CASCADE"), primary_key=True),
)


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(64), nullable=False, unique=True, index=True)  # stored upper-cased
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Float, nullable=False)
    currency = Column(String(3), nullable=True)  # required for fixed_amount

    max_redemptions = Column(Integer, nullable=True)  # None = unlimited
    max_per_customer = Column(Integer, nullable=False, default=1)
    current_redemptions = Column(Integer, nullable=False, default=0)
    min_purchase_amount = Column(Integer, nullable=True)

    starts_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_by = Column(String(36), nullable=True)
    # Python attr metadata_ avoids shadowing Base.metadata
    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    applicable_plans = relationship("Plan", secondary=plan_promotions, lazy="selectin", order_by="Plan.sort_order")

    @property
    def plan_ids(self) -> list[str]:
        return [plan.id for plan in self.applicable_plans]


class PromotionRedemption(Base):
    """One successful redemption; written only by PromotionService.redeem()."""

    __tablename__ = "promotion_redemptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="RESTRICT"), nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False)
    discount_applied = Column(Float, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_redemption_promotion_org", "promotion_id", "organization_id"),)
