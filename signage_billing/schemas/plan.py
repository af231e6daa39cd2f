from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from signage_billing.models.plan import DEFAULT_API_RATE_LIMIT, DEFAULT_STORAGE_QUOTA_MB


class PlanCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=100, description="Unique, case-sensitive plan identifier.")
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    screen_quota: int = Field(..., ge=-1, description="Maximum screens; -1 means unlimited.")
    storage_quota_mb: int = Field(DEFAULT_STORAGE_QUOTA_MB, ge=-1)
    api_rate_limit: int = Field(DEFAULT_API_RATE_LIMIT, ge=0)
    price_usd_monthly: int = Field(..., ge=0, description="Minor units (cents).")
    price_usd_yearly: int = Field(..., ge=0)
    price_inr_monthly: int = Field(..., ge=0, description="Minor units (paise).")
    price_inr_yearly: int = Field(..., ge=0)
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    razorpay_plan_id_monthly: Optional[str] = None
    razorpay_plan_id_yearly: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    feature_flags: Optional[dict[str, Any]] = None
    is_active: bool = True
    is_public: bool = True
    sort_order: int = 0
    highlight_text: Optional[str] = None


class PlanUpdate(BaseModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    screen_quota: Optional[int] = Field(None, ge=-1)
    storage_quota_mb: Optional[int] = Field(None, ge=-1)
    api_rate_limit: Optional[int] = Field(None, ge=0)
    price_usd_monthly: Optional[int] = Field(None, ge=0)
    price_usd_yearly: Optional[int] = Field(None, ge=0)
    price_inr_monthly: Optional[int] = Field(None, ge=0)
    price_inr_yearly: Optional[int] = Field(None, ge=0)
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    razorpay_plan_id_monthly: Optional[str] = None
    razorpay_plan_id_yearly: Optional[str] = None
    features: Optional[list[str]] = None
    feature_flags: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None
    is_public: Optional[bool] = None
    sort_order: Optional[int] = None
    highlight_text: Optional[str] = None


class PlanOrderItem(BaseModel):
    id: str


class ReorderPlans(BaseModel):
    plans: list[PlanOrderItem] = Field(..., min_length=1)


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    name: str
    description: Optional[str]
    screen_quota: int
    storage_quota_mb: int
    api_rate_limit: int
    price_usd_monthly: int
    price_usd_yearly: int
    price_inr_monthly: int
    price_inr_yearly: int
    stripe_price_id_monthly: Optional[str]
    stripe_price_id_yearly: Optional[str]
    razorpay_plan_id_monthly: Optional[str]
    razorpay_plan_id_yearly: Optional[str]
    features: list[str]
    feature_flags: Optional[dict[str, Any]]
    is_active: bool
    is_public: bool
    sort_order: int
    highlight_text: Optional[str]
    created_at: datetime
    updated_at: datetime
