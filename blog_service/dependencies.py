"""FastAPI dependencies for the storage handle and the acting user."""

from fastapi import Depends, Request

from .auth import current_actor
from .db import Database
from .errors import AuthenticationError
from .schemas import SessionClaims


def get_database(request: Request) -> Database:
    """The Database handle created in the application lifespan."""
    return request.app.state.db


def get_current_actor(request: Request) -> SessionClaims | None:
    """Claims from the session cookie, or None for anonymous requests."""
    return current_actor(request)


def require_actor(actor: SessionClaims | None = Depends(get_current_actor)) -> SessionClaims:
    """Like get_current_actor, but anonymous requests fail with 401."""
    if actor is None:
        raise AuthenticationError()
    return actor
