"""
Personal access token payloads.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

TOKEN_SCOPES = ("read", "write")
MAX_TOKEN_NAME = 100


class TokenCreateRequest(BaseModel):
    name: str
    scopes: List[str]
    organization_id: Optional[uuid.UUID] = None
    expires_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = (value or "").strip()
        if not 0 < len(name) <= MAX_TOKEN_NAME:
            raise ValueError(f"name must be 1..{MAX_TOKEN_NAME} characters")
        return name

    @field_validator("scopes")
    @classmethod
    def _known_scopes(cls, value: List[str]) -> List[str]:
        requested = {scope.strip().lower() for scope in value or []}
        if not requested:
            raise ValueError("At least one scope is required")
        unknown = requested.difference(TOKEN_SCOPES)
        if unknown:
            raise ValueError(f"Invalid scope: {', '.join(sorted(unknown))}")
        return sorted(requested)


class TokenUpdateRequest(BaseModel):
    # expires_at sent explicitly as null clears the expiry
    name: Optional[str] = None
    expires_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    """Token metadata; the secret itself is never returned after creation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    name: str
    kind: str
    status: str
    scopes: List[str]
    prefix: Optional[str] = None
    last_four: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class TokenCreateResponse(TokenResponse):
    token: str
