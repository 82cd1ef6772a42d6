"""Typed API errors and the single translation point from exceptions to responses.

Services raise these; the exception handlers in ``error_handlers`` turn them into
``{"error": message}`` JSON bodies with the matching status code.
"""

from pydantic import BaseModel

from .logger import logger


class ErrorCode:
    """Machine-readable error codes carried by every ApiError."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    GONE = "GONE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class ApiError(Exception):
    """Base class for errors that map to a known HTTP status."""

    def __init__(self, message: str, status_code: int = 500, code: str = ErrorCode.INTERNAL_ERROR):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ValidationError(ApiError):
    """Client input failed validation. Expected, so never logged as a server fault."""

    def __init__(self, message: str, field: str | None = None, errors: list[str] | None = None):
        super().__init__(message, 400, ErrorCode.VALIDATION_ERROR)
        self.field = field
        self.errors = errors or [message]


class AuthenticationError(ApiError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, 401, ErrorCode.UNAUTHORIZED)


class ForbiddenError(ApiError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, 403, ErrorCode.FORBIDDEN)


class NotFoundError(ApiError):
    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found", 404, ErrorCode.NOT_FOUND)


class ConflictError(ApiError):
    def __init__(self, message: str = "Conflict"):
        super().__init__(message, 409, ErrorCode.CONFLICT)


class GoneError(ApiError):
    def __init__(self, message: str = "Resource is no longer available"):
        super().__init__(message, 410, ErrorCode.GONE)


class InternalError(ApiError):
    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message, 500, ErrorCode.INTERNAL_ERROR)


class ErrorPayload(BaseModel):
    """Result of translating an arbitrary raised value."""
    message: str
    status_code: int
    code: str


def handle_api_error(error: object) -> ErrorPayload:
    """Translate any raised value into message, status code and error code.

    Known ApiError kinds keep their own status/code. Anything else is reported
    as a 500 with its own message, or a generic one when it has none, and is
    logged with its traceback. Validation failures are client mistakes and are
    not logged.
    """
    if isinstance(error, ApiError):
        if not isinstance(error, ValidationError):
            logger.error(f"API error: {error!r}")
        return ErrorPayload(message=error.message, status_code=error.status_code, code=error.code)

    logger.error(
        f"Unexpected error: {error!r}",
        exc_info=error if isinstance(error, BaseException) else None,
    )

    if isinstance(error, Exception) and str(error):
        return ErrorPayload(message=str(error), status_code=500, code=ErrorCode.INTERNAL_ERROR)

    return ErrorPayload(message=GENERIC_ERROR_MESSAGE, status_code=500, code=ErrorCode.INTERNAL_ERROR)
