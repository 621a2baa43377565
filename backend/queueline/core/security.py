"""Security utilities: staff password check and JWT staff sessions."""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from jwt.exceptions import PyJWTError

from queueline.core.config import settings

logger = logging.getLogger(__name__)

STAFF_ROLE = "staff"

# ---------------------------------------------------------------------------
# Cookie configuration
# ---------------------------------------------------------------------------
COOKIE_STAFF_NAME = "staff_token"
COOKIE_SECURE = not settings.debug  # Secure=True in production
COOKIE_SAMESITE = "lax"
ACCESS_TOKEN_MAX_AGE = settings.access_token_expire_minutes * 60  # in seconds


def verify_staff_password(password: str) -> bool:
    """Compare against the shared staff password in constant time."""
    if not password:
        return False
    return hmac.compare_digest(password.encode("utf-8"), settings.staff_password.encode("utf-8"))


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI for revocation."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_staff_token() -> str:
    return create_access_token({"sub": STAFF_ROLE, "role": STAFF_ROLE})


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token; revoked tokens decode to None."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["exp", "jti"]},
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None

    if _is_token_blacklisted(payload["jti"]):
        logger.debug(f"Token {payload['jti']} is blacklisted")
        return None
    return payload


# In-memory revocation list: jti -> expiry. Cleared on restart, which is
# acceptable because tokens are also short lived.
_memory_blacklist: Dict[str, datetime] = {}


def blacklist_token(token: str) -> bool:
    """Revoke a token until its own expiry (staff logout)."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"verify_exp": False},
        )
    except PyJWTError:
        return False

    jti = payload.get("jti")
    if not jti:
        return False

    exp = payload.get("exp", 0)
    _memory_blacklist[jti] = datetime.fromtimestamp(exp, timezone.utc)
    _purge_expired()
    return True


def _is_token_blacklisted(jti: str) -> bool:
    expires = _memory_blacklist.get(jti)
    if expires is None:
        return False
    if expires <= datetime.now(timezone.utc):
        _memory_blacklist.pop(jti, None)
        return False
    return True


def _purge_expired() -> None:
    now = datetime.now(timezone.utc)
    for jti in [k for k, exp in _memory_blacklist.items() if exp <= now]:
        del _memory_blacklist[jti]
