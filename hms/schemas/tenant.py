"""Tenant and subscription schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from hms.constants.plans import ResourceType, SubscriptionPlan


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    description: str | None = None
    website: str | None = Field(None, max_length=255)
    address: dict | None = None
    plan: SubscriptionPlan = SubscriptionPlan.STARTER

    # Optional first HOSPITAL_ADMIN for the new tenant
    admin_email: EmailStr | None = None
    admin_password: str | None = Field(None, min_length=8, max_length=100)
    admin_first_name: str | None = Field(None, max_length=100)
    admin_last_name: str | None = Field(None, max_length=100)


class TenantUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    description: str | None = None
    website: str | None = Field(None, max_length=255)
    address: dict | None = None
    settings: dict | None = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v):
        # Omit the field to keep the current name
        if v is None:
            raise ValueError("name cannot be null")
        return v


class TenantResponse(BaseModel):
    id: int
    identifier: str
    name: str
    email: str | None = None
    phone: str | None = None
    description: str | None = None
    website: str | None = None
    is_active: bool
    is_on_trial: bool
    trial_ends_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionResponse(BaseModel):
    id: int
    tenant_id: int
    plan: str
    status: str
    features: dict
    price: int
    billing_cycle: int
    is_auto_renew: bool
    started_at: datetime | None = None
    ends_at: datetime | None = None
    next_billing_at: datetime | None = None
    cancelled_at: datetime | None = None
    usage_stats: dict
    is_over_limit: bool

    model_config = ConfigDict(from_attributes=True)


class SubscriptionUpdate(BaseModel):
    plan: SubscriptionPlan


class LimitCheckResponse(BaseModel):
    usage_type: ResourceType
    current_usage: int
    is_within_limit: bool
