"""Input normalization and validation helpers shared by the service layer.

Every function here is pure: no database access, no exceptions. The composite
validators only check the fields they are given (``None`` means "not
provided"), so the same rules serve both create and partial-update inputs.
"""

import re

from .config import settings
from .schemas import ValidationResult

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def normalize_email(email: str) -> str:
    """Convert email to lowercase and strip whitespace."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_username(username: str) -> bool:
    """Letters, digits, underscores and dashes only."""
    return bool(USERNAME_PATTERN.match(username.strip()))


def is_required(value: str | None) -> bool:
    """True when the value has at least one non-whitespace character."""
    return bool(value and value.strip())


def has_min_length(value: str, min_length: int) -> bool:
    return len(value.strip()) >= min_length


def has_max_length(value: str, max_length: int) -> bool:
    return len(value.strip()) <= max_length


def validate_user_input(
    name: str | None = None,
    username: str | None = None,
    email: str | None = None,
) -> ValidationResult:
    """Check the provided user fields and collect one message per failing field."""
    errors: list[str] = []

    if name is not None:
        if not is_required(name):
            errors.append("Name is required")
        elif not has_min_length(name, settings.USER_NAME_MIN_LENGTH):
            errors.append(f"Name must be at least {settings.USER_NAME_MIN_LENGTH} characters long")
        elif not has_max_length(name, settings.USER_NAME_MAX_LENGTH):
            errors.append(f"Name must be at most {settings.USER_NAME_MAX_LENGTH} characters long")

    if username is not None:
        if not is_required(username):
            errors.append("Username is required")
        elif not has_min_length(username, settings.USERNAME_MIN_LENGTH):
            errors.append(f"Username must be at least {settings.USERNAME_MIN_LENGTH} characters long")
        elif not has_max_length(username, settings.USERNAME_MAX_LENGTH):
            errors.append(f"Username must be at most {settings.USERNAME_MAX_LENGTH} characters long")
        elif not is_valid_username(username):
            errors.append("Username can only contain letters, numbers, underscores, and dashes")

    if email is not None:
        if not is_required(email):
            errors.append("Email is required")
        elif not is_valid_email(email):
            errors.append("Invalid email format")
        elif not has_max_length(email, settings.USER_EMAIL_MAX_LENGTH):
            errors.append(f"Email must be at most {settings.USER_EMAIL_MAX_LENGTH} characters long")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_post_input(
    title: str | None = None,
    body: str | None = None,
) -> ValidationResult:
    """Check the provided post fields and collect one message per failing field."""
    errors: list[str] = []

    if title is not None:
        if not is_required(title):
            errors.append("Title is required")
        elif not has_min_length(title, settings.POST_TITLE_MIN_LENGTH):
            errors.append(f"Title must be at least {settings.POST_TITLE_MIN_LENGTH} characters long")
        elif not has_max_length(title, settings.POST_TITLE_MAX_LENGTH):
            errors.append(f"Title must be at most {settings.POST_TITLE_MAX_LENGTH} characters long")

    if body is not None:
        if not is_required(body):
            errors.append("Body is required")
        elif not has_min_length(body, settings.POST_BODY_MIN_LENGTH):
            errors.append(f"Body must be at least {settings.POST_BODY_MIN_LENGTH} characters long")

    return ValidationResult(is_valid=not errors, errors=errors)
