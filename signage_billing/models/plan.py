"""
Plan model: a purchasable tier in the catalog.

Plans are soft-deleted (is_active=False) and never removed: invoices and
promotions keep referencing them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from signage_billing.database import Base

DEFAULT_STORAGE_QUOTA_MB = 5000
DEFAULT_API_RATE_LIMIT = 1000


class Plan(Base):
    __tablename__ = "plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Quotas
    screen_quota = Column(Integer, nullable=False)  # -1 = unlimited
    storage_quota_mb = Column(Integer, nullable=False, default=DEFAULT_STORAGE_QUOTA_MB)
    api_rate_limit = Column(Integer, nullable=False, default=DEFAULT_API_RATE_LIMIT)

    # Prices in minor units (cents / paise)
    price_usd_monthly = Column(Integer, nullable=False, default=0)
    price_usd_yearly = Column(Integer, nullable=False, default=0)
    price_inr_monthly = Column(Integer, nullable=False, default=0)
    price_inr_yearly = Column(Integer, nullable=False, default=0)

    # Payment provider identifiers
    stripe_price_id_monthly = Column(String(100), nullable=True)
    stripe_price_id_yearly = Column(String(100), nullable=True)
    razorpay_plan_id_monthly = Column(String(100), nullable=True)
    razorpay_plan_id_yearly = Column(String(100), nullable=True)

    features = Column(JSON, nullable=False, default=list)
    feature_flags = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_public = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    highlight_text = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("idx_plan_active_public_sort", "is_active", "is_public", "sort_order"),)

    # Columns copied by PlanService.duplicate(); identity and audit columns excluded
    COPYABLE_FIELDS = (
        "name",
        "description",
        "screen_quota",
        "storage_quota_mb",
        "api_rate_limit",
        "price_usd_monthly",
        "price_usd_yearly",
        "price_inr_monthly",
        "price_inr_yearly",
        "stripe_price_id_monthly",
        "stripe_price_id_yearly",
        "razorpay_plan_id_monthly",
        "razorpay_plan_id_yearly",
        "features",
        "feature_flags",
        "sort_order",
        "highlight_text",
    )
