"""Storage handle: engine, session factory, resilience helpers and cleanup."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy import event, text
import asyncio
from .config import settings
from .logger import logger

# Base class for ORM models
Base = declarative_base()


def engine_options(url: str) -> dict:
    """Build create_async_engine kwargs for the driver named in the URL."""
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": settings.DB_CONNECT_TIMEOUT}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,  # Verify connections before use
        "connect_args": {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "command_timeout": settings.DB_QUERY_TIMEOUT,
        },
    }


class Database:
    """Explicitly constructed storage handle passed to the persistence gateway.

    One instance is created at application startup and disposed at shutdown;
    every CRUD call opens its own short-lived session from ``session``.
    """

    def __init__(self, url: str, **options):
        self.url = url
        self.engine = create_async_engine(url, echo=False, **(options or engine_options(url)))
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        # Session factory for creating database sessions
        self.session = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)
        logger.info(f"Database engine configured for {self.engine.url.render_as_string(hide_password=True)}")

    async def create_all(self) -> None:
        """Create all tables directly (tests and local SQLite; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def check_connection(self) -> bool:
        """Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            async def _check():
                async with self.session() as session:
                    await session.execute(text("SELECT 1"))

            await retry_on_db_error(_check, max_retries=2, base_delay=0.1)
            return True
        except (OperationalError, DBAPIError) as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False

    async def dispose(self) -> None:
        """Close all pooled connections. Called once during application shutdown."""
        logger.info("Disposing database engine and closing connections")
        try:
            await self.engine.dispose()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error disposing database engine: {str(e)}", exc_info=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FOREIGN KEY constraints unless enabled on every connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ==================== Database Resilience ====================


async def retry_on_db_error(func, max_retries: int = 3, base_delay: float = 0.5):
    """Retry database operations with exponential backoff.

    Only connection-level failures are retried; constraint violations and
    other errors are raised immediately.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each retry)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            return await func()
        except (OperationalError, DBAPIError) as e:
            last_exception = e

            error_msg = str(e).lower()
            is_retryable = any(marker in error_msg for marker in (
                "connection",
                "timeout",
                "database is locked",
                "server closed the connection",
            ))

            if not is_retryable or attempt == max_retries - 1:
                logger.error(
                    f"Database operation failed (attempt {attempt + 1}/{max_retries}): {str(e)}",
                    exc_info=True
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Database error on attempt {attempt + 1}/{max_retries}, "
                f"retrying in {delay}s: {str(e)}"
            )
            await asyncio.sleep(delay)

    raise last_exception
