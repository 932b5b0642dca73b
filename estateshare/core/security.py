"""Password hashing, reset tokens and JWT access tokens."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
import jwt

from estateshare.core.config import AppSettings, get_settings


class TokenDecodeError(ValueError):
    """Raised when an access token is malformed, expired or badly signed."""


def hash_password(password: str, *, settings: Optional[AppSettings] = None) -> str:
    """Hash a password with bcrypt at the configured cost."""

    settings = settings or get_settings()
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
    except (ValueError, AttributeError):
        return False


def generate_reset_token() -> tuple[str, str]:
    """Return a raw reset token and the SHA-256 hash that gets persisted."""

    raw = secrets.token_hex(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def create_access_token(
    user_id: UUID,
    role: str,
    *,
    settings: Optional[AppSettings] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(minutes=settings.jwt_expires_minutes)
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, *, settings: Optional[AppSettings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise TokenDecodeError(str(exc)) from exc
    return claims
