"""
Token generation, parsing, and hashing utilities.

Two kinds of secrets live here:
- Bearer tokens of the form ``lms_pat_<token_id>_<secret>``. Only an
  Argon2id hash of the secret is stored.
- Login-link tokens: 32 random bytes rendered as hex, stored only as a
  SHA-256 digest and mailed base64url-encoded.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import Type

TOKEN_PREFIX = "lms_pat_"
DISPLAY_PREFIX_LENGTH = 8
LOGIN_LINK_TOKEN_BYTES = 32

_hasher = PasswordHasher(time_cost=2, memory_cost=102400, parallelism=8, hash_len=32, type=Type.ID)


@dataclass(frozen=True)
class ParsedToken:
    token_id: str
    secret: str


def generate_token_id() -> str:
    # hex, so the id never contains the '_' separator
    return uuid.uuid4().hex[:16]


def generate_secret(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def build_token_string(token_id: str, secret: str) -> str:
    return f"{TOKEN_PREFIX}{token_id}_{secret}"


def parse_token(token: str) -> Optional[ParsedToken]:
    """Split a bearer string into id and secret; None when malformed."""
    if not token or not token.startswith(TOKEN_PREFIX):
        return None
    token_id, sep, secret = token[len(TOKEN_PREFIX):].partition("_")
    if not sep or not token_id or not secret:
        return None
    return ParsedToken(token_id=token_id, secret=secret)


def generate_token() -> Tuple[str, str, str]:
    """Return (token_id, secret, full_token) for a new bearer token."""
    token_id, secret = generate_token_id(), generate_secret()
    return token_id, secret, build_token_string(token_id, secret)


def hash_secret(secret: str) -> str:
    return _hasher.hash(secret)


def verify_secret(secret: str, encoded_hash: str) -> bool:
    if not secret or not (encoded_hash or "").startswith("$argon2"):
        return False
    try:
        return _hasher.verify(encoded_hash, secret)
    except (VerificationError, InvalidHashError):
        return False


def derive_display_parts(full_token: str) -> Tuple[str, str]:
    """(prefix, last_four) shown in token listings instead of the secret."""
    parsed = parse_token(full_token)
    if parsed is None:
        return "", ""
    body = full_token[len(TOKEN_PREFIX):]
    return body[:DISPLAY_PREFIX_LENGTH], parsed.secret[-4:]


# Login links


def generate_login_link_token() -> str:
    """Return a fresh raw login-link token (64 uppercase hex chars)."""
    return secrets.token_hex(LOGIN_LINK_TOKEN_BYTES).upper()


def hash_login_link_token(raw: str) -> str:
    """SHA-256 hex digest used as the stored lookup key."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def encode_link_token(raw: str) -> str:
    """base64url without padding, as embedded in the mailed link."""
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_link_token(encoded: str) -> Optional[str]:
    """Reverse `encode_link_token`; None when the value is not valid base64url text."""
    if not encoded:
        return None
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, binascii.Error, UnicodeError):
        return None


def login_link_candidates(presented: str) -> List[str]:
    """Raw-token candidates for a presented value: the decoded form first, then the value as-is."""
    value = (presented or "").strip()
    if not value:
        return []
    candidates = []
    decoded = decode_link_token(value)
    if decoded:
        candidates.append(decoded)
    if value not in candidates:
        candidates.append(value)
    return candidates
