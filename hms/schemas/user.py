from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from hms.constants.roles import UserRole


class UserResponse(BaseModel):
    """Sanitized user; the password hash and account tokens never leave the service."""

    id: int
    tenant_id: int
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    role: str
    permissions: list[str]
    status: str
    is_email_verified: bool
    must_change_password: bool
    last_login_at: datetime | None = None
    profile: dict | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=50)
    role: UserRole
    permissions: list[str] | None = Field(None, description="Defaults to the role's permissions")


class RoleUpdate(BaseModel):
    role: UserRole


class PermissionsUpdate(BaseModel):
    permissions: list[str]


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=50)
    profile: dict | None = None
    preferences: dict | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def names_not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class UserCountsResponse(BaseModel):
    total: int
    doctors: int
    nurses: int
    pharmacists: int
    lab_technicians: int
    receptionists: int
