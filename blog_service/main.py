"""FastAPI application entry point with lifecycle management."""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import settings
from .db import Database
from .error_handlers import register_error_handlers
from .routes import router, limiter
from .logger import logger
from .middleware import (
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
)
from .monitoring import setup_monitoring

# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Acquire the database handle at startup and release it at shutdown."""
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")

    app.state.db = Database(settings.DB_URL)
    if settings.DB_URL.startswith("sqlite"):
        # Local SQLite databases are created on the fly; PostgreSQL uses Alembic
        await app.state.db.create_all()

    logger.info(f"{settings.APP_NAME} started successfully - ready to accept requests")
    try:
        yield
    finally:
        logger.info(f"Shutting down {settings.APP_NAME}...")
        await app.state.db.dispose()
        logger.info(f"{settings.APP_NAME} shutdown complete")

# ==================== Application Setup ====================


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Middleware registration (last registered = outermost layer)
app.middleware("http")(security_headers_middleware)
app.middleware("http")(request_logging_middleware)
app.middleware("http")(add_request_id_middleware)

# CORS middleware; credentials are required for the session cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_error_handlers(app)

app.include_router(router)

setup_monitoring(app)
