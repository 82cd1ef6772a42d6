# API route definitions (HTTP layer)
# Maps requests to service calls; errors are rendered by the handlers in error_handlers.py

import os
from fastapi import APIRouter, Request, Response, Depends, Path, Query, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from .schemas import (
    UserSummary,
    UserProfile,
    UserCreate,
    UserLogin,
    SessionClaims,
    PostCreate,
    PostOut,
    PostFilters,
    PostCreatedResponse,
    PaginatedPostResponse,
    MessageResponse,
)
from .db import Database
from .models import MAX_ID
from .dependencies import get_database, get_current_actor, require_actor
from .errors import ValidationError, AuthenticationError, NotFoundError
from . import services
from .config import settings

limiter = Limiter(key_func=get_remote_address)

# Helper to conditionally apply rate limiting (skip in tests)
def conditional_limit(limit_string):
    """Apply rate limit only if not in test mode."""
    if os.getenv('TEST_MODE'):
        def decorator(func):
            return func
        return decorator
    return limiter.limit(limit_string)


router = APIRouter()

@router.get("/")
def root():
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/health")
async def health_check(database: Database = Depends(get_database)):
    """Health check endpoint for load balancers and monitoring.

    Returns:
        - 200 OK if the service and database are healthy
        - 503 Service Unavailable if the database is unreachable
    """
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
    }

    try:
        is_db_healthy = await database.check_connection()
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"] = f"error: {str(e)}"
        raise HTTPException(status_code=503, detail=health_status)

    if not is_db_healthy:
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        raise HTTPException(status_code=503, detail=health_status)

    health_status["database"] = "connected"
    return health_status


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ============================================================================
# User Endpoints
# ============================================================================

@router.get("/users", response_model=list[UserSummary])
@conditional_limit(settings.RATE_LIMIT_READ)
async def list_users(request: Request, database: Database = Depends(get_database)):
    """All users ordered by name (used to populate the author filter)."""
    return await services.list_users(database)


@router.get("/users/{user_id}", response_model=UserProfile)
@conditional_limit(settings.RATE_LIMIT_READ)
async def get_user_profile(
    request: Request,
    user_id: int = Path(..., ge=1, le=MAX_ID),
    database: Database = Depends(get_database),
):
    profile = await services.get_user_profile(database, user_id)
    if profile is None:
        raise NotFoundError("User")
    return profile


# ============================================================================
# Authentication Endpoints
# ============================================================================

@router.get("/auth/me", response_model=SessionClaims | None)
async def me(actor: SessionClaims | None = Depends(get_current_actor)):
    """Claims of the current session, or null when not logged in."""
    return actor


@router.post("/auth/signup", response_model=SessionClaims, status_code=201)
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def signup(
    data: UserCreate,
    request: Request,
    response: Response,
    database: Database = Depends(get_database),
):
    """Create an account and start a session.

    Raises:
        400: Invalid name, username or email
        409: Email or username already taken
    """
    return await services.signup(database, data, response)


@router.post("/auth/login", response_model=SessionClaims)
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def login(
    data: UserLogin,
    request: Request,
    response: Response,
    database: Database = Depends(get_database),
):
    """Start a session for an existing user identified by email.

    Raises:
        400: Missing or malformed email
        404: No user with that email
    """
    return await services.login(database, data, response)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(response: Response):
    services.logout(response)
    return MessageResponse(message="Logged out successfully")


# ============================================================================
# Post Endpoints
# ============================================================================

@router.get("/posts", response_model=PaginatedPostResponse)
@conditional_limit(settings.RATE_LIMIT_READ)
async def list_posts(
    request: Request,
    user_id: int | None = Query(None, alias="userId", ge=1, le=MAX_ID),  # filter by author
    page: int = settings.DEFAULT_PAGE,
    limit: int = settings.DEFAULT_LIMIT,
    database: Database = Depends(get_database),
):
    filters = PostFilters(user_id=user_id, page=page, limit=limit)
    return await services.list_posts(database, filters)


@router.get("/posts/recent", response_model=list[PostOut])
@conditional_limit(settings.RATE_LIMIT_READ)
async def recent_posts(
    request: Request,
    limit: int = settings.RECENT_POSTS_LIMIT,
    database: Database = Depends(get_database),
):
    return await services.recent_posts(database, limit)


@router.post("/posts", response_model=PostCreatedResponse, status_code=201)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def create_post(
    data: PostCreate,
    request: Request,
    actor: SessionClaims = Depends(require_actor),
    database: Database = Depends(get_database),
):
    """Create a post authored by the current user.

    Raises:
        401: No valid session
        400: Title or body invalid
    """
    post = await services.create_post(database, actor.id, data)
    return PostCreatedResponse(message="Post created successfully", post=post)


@router.delete("/posts/{post_id}", response_model=MessageResponse)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def delete_post(
    post_id: str,
    request: Request,
    actor: SessionClaims | None = Depends(get_current_actor),
    database: Database = Depends(get_database),
):
    """Soft delete a post. Only its author may do this.

    The id is checked before the session so malformed ids are always a 400.

    Raises:
        400: Invalid post ID
        401: No valid session
        403: Not the author
        404: Post not found
        410: Post already deleted
    """
    # Plain ASCII digits only
    if not (post_id.isascii() and post_id.isdigit()) or int(post_id) > MAX_ID:
        raise ValidationError("Invalid post ID", field="id")
    parsed_id = int(post_id)

    if actor is None:
        raise AuthenticationError()

    await services.delete_post(database, parsed_id, actor.id)
    return MessageResponse(message="Post deleted successfully")
