"""Pydantic schemas for request/response validation and serialization.

Response models use camelCase aliases (``userId``, ``deletedAt``, ``hasMore``,
``postCount``) to match the JSON contract consumed by the web client.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from .config import settings


# ==================== Error Schemas ====================

class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    error: str


class MessageResponse(BaseModel):
    message: str


class ValidationResult(BaseModel):
    """Outcome of a composite input check."""
    is_valid: bool
    errors: list[str] = []


# ==================== User Schemas ====================

class UserSummary(BaseModel):
    """Minimal user projection used for author info and the filter list."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    username: str


class UserOut(UserSummary):
    """Public-safe user projection."""
    email: str


class UserProfile(UserOut):
    """User projection with the number of visible posts."""
    model_config = ConfigDict(populate_by_name=True)

    post_count: int = Field(..., alias="postCount")


class UserCreate(BaseModel):
    """Signup body. Fields are optional here so missing ones get the service's messages."""
    name: str | None = None
    username: str | None = None
    email: str | None = None


class UserLogin(BaseModel):
    email: str | None = None


# ==================== Session Schemas ====================

class SessionClaims(BaseModel):
    """Identity fields embedded in a signed session token."""
    id: int
    name: str
    username: str
    email: str


# ==================== Post Schemas ====================

class PostCreate(BaseModel):
    title: str | None = None
    body: str | None = None


class PostOut(BaseModel):
    """Post joined with its author."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    title: str
    body: str
    user_id: int = Field(..., alias="userId")
    deleted: bool
    deleted_at: datetime | None = Field(None, alias="deletedAt")
    user: UserSummary


class PostCreatedResponse(BaseModel):
    message: str
    post: PostOut


class PostFilters(BaseModel):
    """Listing filters; pagination bounds are enforced by the post service."""
    user_id: int | None = None
    include_deleted: bool = False
    page: int = settings.DEFAULT_PAGE
    limit: int = settings.DEFAULT_LIMIT


# ==================== Pagination Schemas ====================

class PaginatedPostResponse(BaseModel):
    """One page of posts with pagination metadata."""
    model_config = ConfigDict(populate_by_name=True)

    posts: list[PostOut]
    total: int
    has_more: bool = Field(..., alias="hasMore")
    page: int
    limit: int
