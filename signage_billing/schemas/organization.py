from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdminSettableStatus(str, Enum):
    """Statuses an admin may set directly; suspension has its own operations."""

    trial = "trial"
    active = "active"
    past_due = "past_due"
    canceled = "canceled"


class OrganizationFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = None
    subscription_tier: Optional[str] = None
    skip: int = Field(0, ge=0)
    take: int = Field(20, ge=1, le=100)
    sort_by: Literal["created_at", "name", "screen_quota"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    billing_email: Optional[str] = None
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    screen_quota: Optional[int] = Field(None, ge=-1)
    trial_ends_at: Optional[datetime] = None
    subscription_status: Optional[AdminSettableStatus] = None


class TierChange(BaseModel):
    plan_slug: str = Field(..., min_length=1)


class ExtendTrial(BaseModel):
    days: int


class SuspendOrganization(BaseModel):
    reason: str = Field(..., min_length=1)


class AddAdminNote(BaseModel):
    note: str = Field(..., min_length=1, max_length=2000)


class AdminNote(BaseModel):
    id: str
    note: str
    added_by: str
    added_at: datetime


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    billing_email: Optional[str]
    country: Optional[str]
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[datetime]
    screen_quota: int
    previous_status: Optional[str]
    suspended_at: Optional[datetime]
    suspension_reason: Optional[str]
    admin_notes: list[AdminNote] = []
    created_at: datetime
    updated_at: datetime


class AdminNoteResult(BaseModel):
    organization: OrganizationResponse
    note: AdminNote


class OrganizationPage(BaseModel):
    data: list[OrganizationResponse]
    total: int
    skip: int
    take: int


class OrganizationStats(BaseModel):
    display_count: int
    screen_quota: int
    screens_remaining: Optional[int] = Field(None, description="None when the quota is unlimited.")
    redemption_count: int
    last_admin_action_at: Optional[datetime] = None


class ErasureResult(BaseModel):
    deleted: bool
    organization_id: str
    organization_name: str
    displays_deleted: int
    redemptions_deleted: int


class DisplayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class DisplayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    name: str
    created_at: datetime
