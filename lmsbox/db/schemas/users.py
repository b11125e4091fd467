import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class UserBase(BaseModel):
    email: str
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class User(UserBase):
    id: uuid.UUID
    is_superadmin: bool
    active_status: str
    last_login_at: datetime | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("display_name", "first_name", "last_name")
    @classmethod
    def _validate_length(cls, v: Optional[str]):
        if v is None:
            return v
        s = v.strip()
        if len(s) == 0 or len(s) > 80:
            raise ValueError("must be 1..80 characters")
        return s
