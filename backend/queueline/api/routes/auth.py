"""Staff session routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from queueline.core.auth import OptionalStaff, session_from_token
from queueline.core.rate_limit import limiter
from queueline.core.security import (
    ACCESS_TOKEN_MAX_AGE,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    COOKIE_STAFF_NAME,
    blacklist_token,
    create_staff_token,
    verify_staff_password,
)
from queueline.schemas.queue import LoginRequest

logger = logging.getLogger("auth")

router = APIRouter()


@router.post("/login")
@limiter.limit("5/minute")
def login(request: Request, response: Response, login_request: LoginRequest):
    """Exchange the staff password for a session token.

    The token is returned in the body and also set as an HttpOnly cookie
    so the staff dashboard and its WebSocket can use it.
    """
    client_ip = request.client.host if request.client else "unknown"
    if not verify_staff_password(login_request.password):
        logger.warning(f"Failed staff login from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    token = create_staff_token()
    session = session_from_token(token)
    response.set_cookie(
        key=COOKIE_STAFF_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=ACCESS_TOKEN_MAX_AGE,
    )
    logger.info(f"Staff logged in from IP: {client_ip}")
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": session.expires_at.isoformat(),
    }


@router.post("/logout")
def logout(response: Response, staff: OptionalStaff):
    """Revoke the current token and clear the cookie. Safe to call twice."""
    if staff is not None:
        blacklist_token(staff.token)
        logger.info(f"Staff session {staff.jti} logged out")
    response.delete_cookie(COOKIE_STAFF_NAME, samesite=COOKIE_SAMESITE)
    return {"message": "Logged out successfully"}


@router.get("/session")
def get_session(staff: OptionalStaff):
    if staff is None:
        return {"authenticated": False, "expires_at": None}
    return {"authenticated": True, "expires_at": staff.expires_at.isoformat()}
