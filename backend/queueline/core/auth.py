"""Staff session dependencies."""

from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from starlette.requests import HTTPConnection

from queueline.core.security import COOKIE_STAFF_NAME, STAFF_ROLE, decode_access_token


class StaffSession:
    """Decoded staff token.

    Attributes:
        token: The raw JWT, kept so logout can revoke it.
        jti: Unique token id.
        expires_at: Token expiry (UTC).
    """

    def __init__(self, token: str, jti: str, expires_at: datetime):
        self.token = token
        self.jti = jti
        self.expires_at = expires_at


def extract_token(connection: HTTPConnection, query_token: Optional[str] = None) -> Optional[str]:
    """Find a staff token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. explicit token (WebSocket query string)
    3. staff_token cookie (HttpOnly)
    """
    auth_header = connection.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    if query_token:
        return query_token
    return connection.cookies.get(COOKIE_STAFF_NAME) or None


def session_from_token(token: Optional[str]) -> Optional[StaffSession]:
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None or payload.get("role") != STAFF_ROLE:
        return None
    return StaffSession(
        token=token,
        jti=payload["jti"],
        expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
    )


async def get_optional_staff(request: Request) -> Optional[StaffSession]:
    """Get the staff session if a valid token is provided, otherwise None."""
    return session_from_token(extract_token(request))


async def get_current_staff(
    session: Annotated[Optional[StaffSession], Depends(get_optional_staff)],
) -> StaffSession:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Staff login required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


RequireStaff = Annotated[StaffSession, Depends(get_current_staff)]
OptionalStaff = Annotated[Optional[StaffSession], Depends(get_optional_staff)]
