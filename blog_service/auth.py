"""Session tokens: JWT issuance/verification and the HTTP-only cookie that carries them."""

from datetime import datetime, timedelta, timezone

from fastapi import Request, Response
from jose import JWTError, jwt
from pydantic import ValidationError as ClaimsError

from .config import settings
from .schemas import SessionClaims

SESSION_MAX_AGE = 60 * 60 * 24 * settings.SESSION_EXPIRATION_DAYS


# ==================== JWT Token Management ====================

def issue_token(claims: SessionClaims, expires_delta: timedelta | None = None) -> str:
    """Sign the claim set with an expiry. Defaults to the configured session lifetime."""
    to_encode = claims.model_dump()

    if expires_delta is not None:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(days=settings.SESSION_EXPIRATION_DAYS)

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> SessionClaims | None:
    """Return the claims if the token is authentic and unexpired, otherwise None.

    Forged, expired and malformed tokens all look the same to the caller.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return SessionClaims.model_validate(payload)
    except (JWTError, ClaimsError):
        return None


# ==================== Cookie Transport ====================

def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
        secure=not settings.is_local,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=not settings.is_local,
        samesite="strict",
    )


def current_actor(request: Request) -> SessionClaims | None:
    """Claims from the session cookie, or None when absent or invalid."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    return verify_token(token)
