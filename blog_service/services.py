"""Business logic layer for users, posts and authentication.

Services validate input before touching storage, translate storage failures
into typed API errors, and never leak SQLAlchemy exceptions to callers.
Every operation receives the ``Database`` handle explicitly.
"""

from fastapi import Response
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import crud
from .auth import issue_token, set_session_cookie, clear_session_cookie
from .config import settings
from .crud import DeleteOutcome, UniqueViolationError
from .db import Database
from .errors import (
    ValidationError,
    AuthenticationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    GoneError,
    InternalError,
)
from .logger import logger
from .models import User, Post, MAX_ID
from .schemas import (
    UserOut,
    UserSummary,
    UserProfile,
    UserCreate,
    UserLogin,
    SessionClaims,
    PostCreate,
    PostOut,
    PostFilters,
    PaginatedPostResponse,
)
from .utils import (
    normalize_email,
    is_required,
    is_valid_email,
    validate_user_input,
    validate_post_input,
)

# ==================== Helper Functions ====================


def _convert_to_user_out(user: User) -> UserOut:
    """Convert ORM User model to the public projection."""
    return UserOut(id=user.id, name=user.name, username=user.username, email=user.email)


def _convert_to_post_out(post: Post) -> PostOut:
    """Convert ORM Post (with author loaded) to PostOut."""
    return PostOut(
        id=post.id,
        title=post.title,
        body=post.body,
        user_id=post.user_id,
        deleted=post.deleted,
        deleted_at=post.deleted_at,
        user=UserSummary.model_validate(post.author),
    )


def _validate_pagination(page: int, limit: int) -> int:
    """Reject out-of-range pagination parameters.

    Returns:
        int: the number of rows to skip
    """
    if page < 1:
        raise ValidationError("Page must be a positive integer", field="page")
    if limit < 1 or limit > settings.MAX_LIMIT:
        raise ValidationError(f"Limit must be between 1 and {settings.MAX_LIMIT}", field="limit")
    skip = (page - 1) * limit
    if skip > MAX_ID:
        raise ValidationError("Page is out of range", field="page")
    return skip


def _raise_if_invalid(result, field: str | None = None) -> None:
    if not result.is_valid:
        raise ValidationError(result.errors[0], field=field, errors=result.errors)


def _session_claims(user: UserOut) -> SessionClaims:
    return SessionClaims(id=user.id, name=user.name, username=user.username, email=user.email)


# ==================== User Operations ====================


async def find_user_by_email(database: Database, email: str) -> UserOut | None:
    """Look up a user by email (normalized before matching)."""
    try:
        user = await crud.select_user_by_email(database, normalize_email(email))
    except SQLAlchemyError as e:
        logger.error(f"Error finding user by email: {str(e)}", exc_info=True)
        raise InternalError("Failed to find user") from e
    return _convert_to_user_out(user) if user else None


async def find_user_by_id(database: Database, user_id: int) -> UserOut | None:
    try:
        user = await crud.select_user(database, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error finding user by ID {user_id}: {str(e)}", exc_info=True)
        raise InternalError("Failed to find user") from e
    return _convert_to_user_out(user) if user else None


async def create_user(database: Database, data: UserCreate) -> UserOut:
    """Validate, normalize and persist a new user.

    Every field is required here, so absent fields are checked as empty strings.
    Uniqueness is left to the database constraint rather than pre-checked.
    """
    _raise_if_invalid(validate_user_input(
        name=data.name or "",
        username=data.username or "",
        email=data.email or "",
    ))

    name = data.name.strip()
    username = data.username.strip()
    email = normalize_email(data.email)

    logger.info(f"Creating user: username={username} email={email}")
    try:
        user = await crud.insert_user(database, name, username, email)
    except UniqueViolationError as e:
        logger.warning(f"User creation rejected - duplicate {e.column}: {email}")
        raise ConflictError(f"User with this {e.column} already exists") from e
    except SQLAlchemyError as e:
        logger.error(f"Error creating user {email}: {str(e)}", exc_info=True)
        raise InternalError("Failed to create user") from e

    logger.info(f"User created successfully: id={user.id} username={user.username}")
    return _convert_to_user_out(user)


async def list_users(database: Database) -> list[UserSummary]:
    """All users ordered by name, for the author filter."""
    try:
        users = await crud.list_users(database)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching users: {str(e)}", exc_info=True)
        raise InternalError("Failed to fetch users") from e
    return [UserSummary.model_validate(u) for u in users]


async def get_user_profile(database: Database, user_id: int) -> UserProfile | None:
    """User projection plus the number of visible posts, or None for unknown ids."""
    try:
        user = await crud.select_user(database, user_id)
        if user is None:
            return None
        post_count = await crud.count_user_posts(database, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching user profile {user_id}: {str(e)}", exc_info=True)
        raise InternalError("Failed to fetch user profile") from e

    return UserProfile(
        id=user.id,
        name=user.name,
        username=user.username,
        email=user.email,
        post_count=post_count,
    )

# ==================== Post Operations ====================


async def list_posts(database: Database, filters: PostFilters | None = None) -> PaginatedPostResponse:
    """One page of posts, newest first, optionally restricted to one author."""
    filters = filters or PostFilters()
    skip = _validate_pagination(filters.page, filters.limit)

    logger.debug(
        f"Listing posts: page={filters.page} limit={filters.limit} "
        f"user_id={filters.user_id} include_deleted={filters.include_deleted}"
    )
    try:
        posts, total = await crud.list_posts(
            database,
            skip,
            filters.limit,
            user_id=filters.user_id,
            include_deleted=filters.include_deleted,
        )
    except SQLAlchemyError as e:
        logger.error(f"Error fetching posts: {str(e)}", exc_info=True)
        raise InternalError("Failed to fetch posts") from e

    return PaginatedPostResponse(
        posts=[_convert_to_post_out(p) for p in posts],
        total=total,
        has_more=skip + len(posts) < total,
        page=filters.page,
        limit=filters.limit,
    )


async def create_post(database: Database, actor_id: int, data: PostCreate) -> PostOut:
    """Validate and persist a post owned by the acting user."""
    _raise_if_invalid(validate_post_input(title=data.title or "", body=data.body or ""))

    try:
        post = await crud.insert_post(database, actor_id, data.title.strip(), data.body.strip())
    except IntegrityError as e:
        # The session names a user that no longer exists
        logger.warning(f"Rejected post for unknown user {actor_id}")
        raise AuthenticationError() from e
    except SQLAlchemyError as e:
        logger.error(f"Error creating post for user {actor_id}: {str(e)}", exc_info=True)
        raise InternalError("Failed to create post") from e

    logger.info(f"Post created: id={post.id} user_id={actor_id}")
    return _convert_to_post_out(post)


async def delete_post(database: Database, post_id: int, actor_id: int) -> None:
    """Soft delete a post on behalf of its author.

    Failures are reported in this order: missing post, already deleted,
    not the author.
    """
    logger.info(f"Deleting post: id={post_id} actor={actor_id}")
    try:
        outcome = await crud.soft_delete_post(database, post_id, actor_id)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting post {post_id}: {str(e)}", exc_info=True)
        raise InternalError("Failed to delete post") from e

    if outcome is DeleteOutcome.NOT_FOUND:
        logger.warning(f"Cannot delete - post not found: id={post_id}")
        raise NotFoundError("Post")
    if outcome is DeleteOutcome.ALREADY_DELETED:
        logger.warning(f"Cannot delete - post already deleted: id={post_id}")
        raise GoneError("Post has already been deleted")
    if outcome is DeleteOutcome.NOT_OWNER:
        logger.warning(f"Cannot delete - user {actor_id} does not own post {post_id}")
        raise ForbiddenError("You can only delete your own posts")

    logger.info(f"Post deleted successfully: id={post_id}")


async def recent_posts(database: Database, limit: int = settings.RECENT_POSTS_LIMIT) -> list[PostOut]:
    """Newest visible posts from any author, for the landing page."""
    _validate_pagination(1, limit)
    try:
        posts, _ = await crud.list_posts(database, 0, limit)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching recent posts: {str(e)}", exc_info=True)
        raise InternalError("Failed to fetch recent posts") from e
    return [_convert_to_post_out(p) for p in posts]

# ==================== Authentication ====================


def start_session(response: Response, claims: SessionClaims) -> str:
    """Issue a token for the actor and attach it to the response cookie."""
    token = issue_token(claims)
    set_session_cookie(response, token)
    return token


async def login(database: Database, data: UserLogin, response: Response) -> SessionClaims:
    """Authenticate by email and start a session."""
    if not is_required(data.email):
        raise ValidationError("Email is required", field="email")
    if not is_valid_email(data.email):
        raise ValidationError("Invalid email format", field="email")

    logger.info(f"Login attempt: {normalize_email(data.email)}")
    user = await find_user_by_email(database, data.email)
    if user is None:
        logger.warning(f"Login failed - user not found: {normalize_email(data.email)}")
        raise NotFoundError("User")

    claims = _session_claims(user)
    start_session(response, claims)
    logger.info(f"Login successful: id={user.id}")
    return claims


async def signup(database: Database, data: UserCreate, response: Response) -> SessionClaims:
    """Create an account and start a session for it."""
    user = await create_user(database, data)
    claims = _session_claims(user)
    start_session(response, claims)
    return claims


def logout(response: Response) -> None:
    """End the session. Always succeeds, even without one."""
    clear_session_cookie(response)
