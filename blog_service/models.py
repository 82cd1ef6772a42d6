"""SQLAlchemy ORM models for database tables."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .db import Base
from .config import settings

# Largest value an Integer primary key column can hold
MAX_ID = 2**31 - 1


class User(Base):
    """User model mapped to 'users' table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(settings.USER_NAME_MAX_LENGTH), nullable=False)
    username = Column(String(settings.USERNAME_MAX_LENGTH), nullable=False, unique=True, index=True)
    email = Column(String(settings.USER_EMAIL_MAX_LENGTH), nullable=False, unique=True, index=True)

    posts = relationship(
        "Post",
        back_populates="author",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Post(Base):
    """Post model mapped to 'posts' table. Rows are soft-deleted, never removed."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(settings.POST_TITLE_MAX_LENGTH), nullable=False)
    body = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    author = relationship("User", back_populates="posts")
