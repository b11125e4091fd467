from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator


class LoginLinkRequest(BaseModel):
    email: str
    # Accepted for client compatibility; captcha checks happen at the edge proxy
    recaptcha_token: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str):
        s = (v or "").strip().lower()
        if "@" not in s or len(s) > 254:
            raise ValueError("A valid email address is required")
        return s


class VerifyLoginLinkRequest(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def _require_token(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("token is required")
        return s


class SessionTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: dict
