"""Persistence gateway: typed CRUD operations for users and posts.

Every function takes the ``Database`` handle explicitly and opens its own
session. Storage errors propagate as SQLAlchemy exceptions, except unique
constraint violations on users, which surface as ``UniqueViolationError``.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from .db import Database
from .models import User, Post
from .logger import logger


class UniqueViolationError(Exception):
    """A unique constraint rejected an insert. ``column`` names the offending field."""

    def __init__(self, column: str):
        super().__init__(f"unique constraint violated on {column}")
        self.column = column


class DeleteOutcome(enum.Enum):
    """Result of a conditional soft delete, in precedence order of the failures."""
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    ALREADY_DELETED = "already_deleted"
    NOT_OWNER = "not_owner"


# ==================== User Operations ====================


async def insert_user(database: Database, name: str, username: str, email: str) -> User:
    """Insert a new user. Raises UniqueViolationError on duplicate email or username."""
    async with database.session() as session:
        try:
            async with session.begin():
                user = User(name=name, username=username, email=email)
                session.add(user)
            await session.refresh(user)
            return user
        except IntegrityError as e:
            column = await _find_conflicting_user_column(database, username, email)
            logger.debug(f"Duplicate user rejected: column={column}")
            raise UniqueViolationError(column) from e


async def _find_conflicting_user_column(database: Database, username: str, email: str) -> str:
    """Identify which unique column an IntegrityError on users came from."""
    async with database.session() as session:
        email_taken = await session.scalar(select(User.id).where(User.email == email))
        if email_taken is not None:
            return "email"
        username_taken = await session.scalar(select(User.id).where(User.username == username))
        if username_taken is not None:
            return "username"
    return "email or username"


async def select_user(database: Database, user_id: int) -> User | None:
    """Retrieve a user by ID."""
    async with database.session() as session:
        return await session.get(User, user_id)


async def select_user_by_email(database: Database, email: str) -> User | None:
    """Retrieve a user by (already normalized) email address."""
    async with database.session() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def list_users(database: Database) -> list[User]:
    """All users ordered by name, for populating author filters."""
    async with database.session() as session:
        result = await session.execute(select(User).order_by(User.name.asc(), User.id.asc()))
        return list(result.scalars().all())


async def count_user_posts(database: Database, user_id: int) -> int:
    """Number of non-deleted posts written by the user."""
    async with database.session() as session:
        stmt = (
            select(func.count())
            .select_from(Post)
            .where(Post.user_id == user_id, Post.deleted.is_(False))
        )
        return (await session.execute(stmt)).scalar() or 0


# ==================== Post Operations ====================


async def list_posts(
    database: Database,
    skip: int,
    limit: int,
    user_id: int | None = None,  # Filter by author
    include_deleted: bool = False,
) -> tuple[list[Post], int]:
    """List posts newest first with their authors. Returns the page and the total count."""
    async with database.session() as session:
        conditions: list = []
        if user_id is not None:
            conditions.append(Post.user_id == user_id)
        if not include_deleted:
            conditions.append(Post.deleted.is_(False))

        count_stmt = select(func.count()).select_from(Post)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
        total = (await session.execute(count_stmt)).scalar() or 0

        stmt = select(Post).options(joinedload(Post.author))
        if conditions:
            stmt = stmt.where(*conditions)
        stmt = stmt.order_by(Post.id.desc()).offset(skip).limit(limit)
        result = await session.execute(stmt)
        posts = list(result.scalars().all())
        logger.debug(f"Query executed: returned {len(posts)} posts out of {total} total")
        return posts, total


async def select_post(database: Database, post_id: int) -> Post | None:
    """Retrieve a post with its author, deleted or not."""
    async with database.session() as session:
        result = await session.execute(
            select(Post).options(joinedload(Post.author)).where(Post.id == post_id)
        )
        return result.scalars().first()


async def insert_post(database: Database, user_id: int, title: str, body: str) -> Post:
    """Insert a post owned by ``user_id`` and return it with its author loaded."""
    async with database.session() as session:
        async with session.begin():
            post = Post(title=title, body=body, user_id=user_id, deleted=False)
            session.add(post)
        result = await session.execute(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.id == post.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()


async def soft_delete_post(database: Database, post_id: int, user_id: int) -> DeleteOutcome:
    """Mark a post deleted only if it exists, is live, and belongs to ``user_id``.

    The check and the write are one UPDATE statement, so two concurrent calls
    cannot both succeed. When nothing was updated the row is read back to
    report why.
    """
    async with database.session() as session:
        async with session.begin():
            stmt = (
                update(Post)
                .where(Post.id == post_id, Post.user_id == user_id, Post.deleted.is_(False))
                .values(deleted=True, deleted_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if result.rowcount == 1:
                return DeleteOutcome.DELETED

            post = await session.get(Post, post_id)
            if post is None:
                return DeleteOutcome.NOT_FOUND
            if post.deleted:
                return DeleteOutcome.ALREADY_DELETED
            return DeleteOutcome.NOT_OWNER
