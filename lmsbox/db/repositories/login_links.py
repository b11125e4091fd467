"""
Login-link token repository.

Rows store only the SHA-256 digest of the raw token. A row is usable while
``used_at`` is NULL and ``expires_at`` lies in the future.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models


def _now() -> datetime:
    return datetime.now(timezone.utc)


def expire_active_for_user(db: Session, *, user_id: uuid.UUID, now: Optional[datetime] = None) -> int:
    """Close every unused, unexpired link of the user; returns how many were closed."""
    now = now or _now()
    rows = (
        db.query(models.LoginLinkToken)
        .filter(
            models.LoginLinkToken.user_id == user_id,
            models.LoginLinkToken.used_at.is_(None),
            models.LoginLinkToken.expires_at > now,
        )
        .all()
    )
    for row in rows:
        row.expires_at = now
    if rows:
        db.flush()
    return len(rows)


def create_login_link(db: Session, *, user_id: uuid.UUID, token_hash: str, expires_at: datetime) -> models.LoginLinkToken:
    row = models.LoginLinkToken(
        user_id=user_id,
        token_hash=token_hash,
        created_at=_now(),
        expires_at=expires_at,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def find_usable(db: Session, *, token_hashes: Iterable[str], now: Optional[datetime] = None) -> Optional[models.LoginLinkToken]:
    """Newest unused, unexpired row matching any of the digests."""
    hashes = [h for h in token_hashes if h]
    if not hashes:
        return None
    now = now or _now()
    return (
        db.query(models.LoginLinkToken)
        .filter(
            models.LoginLinkToken.token_hash.in_(hashes),
            models.LoginLinkToken.used_at.is_(None),
            models.LoginLinkToken.expires_at > now,
        )
        .order_by(models.LoginLinkToken.created_at.desc())
        .first()
    )


def mark_used(db: Session, row: models.LoginLinkToken) -> models.LoginLinkToken:
    row.used_at = _now()
    db.commit()
    db.refresh(row)
    return row


def record_delivery(db: Session, row: models.LoginLinkToken, *, success: bool, error: Optional[str] = None) -> None:
    if success:
        row.sent_at = _now()
        row.last_send_error = None
    else:
        row.send_failed_count = (row.send_failed_count or 0) + 1
        row.last_send_error = (error or "unknown error")[:2000]
    db.commit()
