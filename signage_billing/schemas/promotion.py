from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from signage_billing.models.promotion import DiscountType


class PromotionCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64, description="Case-insensitive; stored upper-cased.")
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: float
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="Required for fixed_amount.")
    max_redemptions: Optional[int] = Field(None, ge=0, description="None means unlimited.")
    max_per_customer: int = Field(1, ge=1)
    min_purchase_amount: Optional[int] = Field(None, ge=0)
    starts_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool = True
    plan_ids: Optional[list[str]] = None
    created_by: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class PromotionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    max_redemptions: Optional[int] = Field(None, ge=0)
    max_per_customer: Optional[int] = Field(None, ge=1)
    min_purchase_amount: Optional[int] = Field(None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    plan_ids: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None


class PromotionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    description: Optional[str]
    discount_type: str
    discount_value: float
    currency: Optional[str]
    max_redemptions: Optional[int]
    max_per_customer: int
    current_redemptions: int
    min_purchase_amount: Optional[int]
    starts_at: datetime
    expires_at: Optional[datetime]
    is_active: bool
    created_by: Optional[str]
    plan_ids: list[str]
    created_at: datetime
    updated_at: datetime


class PromotionDiscount(BaseModel):
    """The minimal discount descriptor handed to checkout after a successful validation."""

    id: str
    code: str
    discount_type: str
    discount_value: float
    currency: Optional[str] = None


class ValidationResult(BaseModel):
    valid: bool
    promotion: Optional[PromotionDiscount] = None
    error: Optional[str] = None


class ValidatePromotionRequest(BaseModel):
    code: str = Field(..., min_length=1)
    plan_id: Optional[str] = None
    organization_id: Optional[str] = None


class BulkGenerateRequest(BaseModel):
    prefix: str = Field(..., min_length=1, max_length=32)
    count: int


class BulkGenerateResponse(BaseModel):
    codes: list[str]
    requested: int
    generated: int


class RedemptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    promotion_id: str
    organization_id: str
    discount_applied: float
    redeemed_at: datetime


class PromotionDeleteResponse(BaseModel):
    id: str
    deleted: bool
    deactivated: bool
