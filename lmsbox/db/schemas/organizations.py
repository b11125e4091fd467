import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class OrganizationBase(BaseModel):
    name: str
    slug: str | None = None


class Organization(OrganizationBase):
    id: uuid.UUID
    is_active: bool
    created_by: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrganizationSettings(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    brand_name: str | None = None
    logo_url: str | None = None
    support_name: str | None = None
    support_email: str | None = None
    support_phone: str | None = None
    max_users: int | None = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class OrganizationSettingsUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    brand_name: Optional[str] = None
    logo_url: Optional[str] = None
    support_name: Optional[str] = None
    support_email: Optional[str] = None
    support_phone: Optional[str] = None
    max_users: Optional[int] = None

    @field_validator("max_users")
    @classmethod
    def _validate_max_users(cls, v: Optional[int]):
        if v is not None and v < 1:
            raise ValueError("max_users must be positive")
        return v


class OrganizationMember(BaseModel):
    user_id: uuid.UUID
    email: str
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str
    can_read: bool
    can_write: bool
    active_status: str
    created_at: datetime | None = None
