import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index, Integer
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


def _owner_fk():
    return Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


class PersonalAccessToken(Base):
    """Bearer credential `lms_pat_<token_id>_<secret>`; only an argon2 hash of the secret is kept."""

    __tablename__ = "personal_access_tokens"
    __table_args__ = (
        Index("ix_pat_token_id", "token_id", unique=True),
        Index("idx_pat_user_created", "user_id", "created_at"),
        Index("idx_pat_status", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = _owner_fk()
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)

    token_id = Column(String(64), nullable=False, unique=True)
    token_hash = Column(Text, nullable=False)
    name = Column(String(100), nullable=False)
    prefix = Column(String(12), nullable=True)
    last_four = Column(String(4), nullable=True)

    scopes = Column(JSONB, nullable=False)
    status = Column(String(20), nullable=False, default="active")  # active | revoked
    kind = Column(String(20), nullable=False, default="api")  # api | session

    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)


class LoginLinkToken(Base):
    """Single-use emailed sign-in link, stored as a sha256 digest."""

    __tablename__ = "login_link_tokens"
    __table_args__ = (
        Index("ix_login_link_tokens_token_hash", "token_hash"),
        Index("idx_login_link_tokens_user_created", "user_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = _owner_fk()
    token_hash = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    send_failed_count = Column(Integer, nullable=False, default=0)
    last_send_error = Column(Text, nullable=True)
