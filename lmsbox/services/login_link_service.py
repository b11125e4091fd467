"""
Passwordless sign-in links.

A link carries a random token; only its SHA-256 digest is stored. Issuing a
new link closes the user's previous open links, and a link validates once.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from lmsbox.db import models
from lmsbox.db.repositories import login_links as login_link_repo
from lmsbox.services.email_service import EmailService, get_email_service
from lmsbox.utils import token_crypto
from lmsbox.utils.urls import build_login_link, get_frontend_base_url

logger = logging.getLogger(__name__)


class LoginLinkConfig:
    """Configuration for login links from environment variables."""

    def __init__(self):
        self.expiry_minutes = int(os.getenv('LOGIN_LINK_EXPIRY_MINUTES', '15'))
        self.frontend_base_url = get_frontend_base_url()
        self.session_token_ttl_hours = int(os.getenv('SESSION_TOKEN_TTL_HOURS', '12'))
        self.subject = os.getenv('LOGIN_LINK_SUBJECT', 'Your sign-in link')
        self.brand_name = os.getenv('FROM_NAME', 'LMS')


class LoginLinkService:
    def __init__(
        self,
        db: Session,
        *,
        config: Optional[LoginLinkConfig] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.config = config or LoginLinkConfig()
        self.email_service = email_service or get_email_service()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def issue(self, user: models.User) -> tuple[models.LoginLinkToken, str]:
        """Store a fresh link for ``user``; returns (row, login_url)."""
        now = self._now()
        closed = login_link_repo.expire_active_for_user(self.db, user_id=user.id, now=now)
        if closed:
            logger.info("Closed %d open login link(s) for user %s", closed, user.id)
        raw = token_crypto.generate_login_link_token()
        row = login_link_repo.create_login_link(
            self.db,
            user_id=user.id,
            token_hash=token_crypto.hash_login_link_token(raw),
            expires_at=now + timedelta(minutes=self.config.expiry_minutes),
        )
        url = build_login_link(token_crypto.encode_link_token(raw), self.config.frontend_base_url)
        return row, url

    async def create_and_send(self, user: models.User, *, brand_name: Optional[str] = None) -> bool:
        """Issue a link and mail it; returns whether delivery succeeded."""
        row, url = self.issue(user)
        context = {
            "user_name": user.full_name,
            "login_url": url,
            "expiry_minutes": self.config.expiry_minutes,
            "brand_name": brand_name or self.config.brand_name,
        }
        try:
            html_content, text_content = self.email_service.render_template("login_link", context)
        except Exception as exc:
            logger.error("Login link template failed for user %s: %s", user.id, exc)
            login_link_repo.record_delivery(self.db, row, success=False, error=str(exc))
            return False

        result = await self.email_service.send_email(
            to_email=user.email,
            subject=self.config.subject,
            html_content=html_content,
            text_content=text_content,
        )
        success = bool(result.get("success"))
        login_link_repo.record_delivery(self.db, row, success=success, error=result.get("error"))
        if success:
            logger.info("Login link sent to user %s", user.id)
        else:
            logger.warning("Login link delivery failed for user %s: %s", user.id, result.get("error"))
        return success

    def validate(self, token: str) -> Optional[models.LoginLinkToken]:
        """Consume a presented token; returns the row or None when invalid, used or expired."""
        hashes = [token_crypto.hash_login_link_token(c) for c in token_crypto.login_link_candidates(token)]
        row = login_link_repo.find_usable(self.db, token_hashes=hashes, now=self._now())
        if row is None:
            return None
        return login_link_repo.mark_used(self.db, row)
