"""Global exception handlers: every failure leaves as ``{"error": message}``.

- ApiError: its own status code and message
- RequestValidationError: 400 with the first field problem
- anything else: 500 with a generic message, details only in the log
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import ApiError, handle_api_error
from .logger import logger

INTERNAL_SERVER_ERROR_MESSAGE = "Internal server error"


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        payload = handle_api_error(exc)
        return JSONResponse(status_code=payload.status_code, content={"error": payload.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.warning(f"Request validation failed on {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _describe_validation_error(errors)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}")
        payload = handle_api_error(exc)
        # Raw exception text stays in the log
        return JSONResponse(
            status_code=payload.status_code,
            content={"error": INTERNAL_SERVER_ERROR_MESSAGE},
        )


def _describe_validation_error(errors) -> str:
    """Turn FastAPI's error list into one readable message, e.g. 'page: Input should be a valid integer'."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid value")
    return f"{'.'.join(location)}: {message}" if location else message
