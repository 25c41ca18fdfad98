"""
Async database connection using asyncpg (NO ORM).

One pool per process, created in the FastAPI lifespan. Request handlers receive a
``PostgresRepository`` bound to a pooled connection through ``get_repository``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import asyncpg

from civic_admin.core.config import Settings
from civic_admin.core.logging_config import get_logger
from civic_admin.core.repository import PostgresRepository

logger = get_logger(__name__)

# Global connection pool
_pool: asyncpg.Pool | None = None


async def init_db_pool(settings: Settings) -> None:
    """Initialize database connection pool on startup."""
    global _pool
    _pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=2,
        max_size=20,
        max_inactive_connection_lifetime=300,
        timeout=30,
        command_timeout=60,
    )
    logger.info(
        f"Database pool initialized: {_pool.get_size()} / {_pool.get_max_size()} connections"
    )


async def close_db_pool() -> None:
    """Close database connection pool on shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


@asynccontextmanager
async def get_db_connection():
    """
    Get a database connection from the pool.

    Usage:
        async with get_db_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
    """
    if not _pool:
        raise RuntimeError("Database pool not initialized. Call init_db_pool() first.")

    async with _pool.acquire() as connection:
        yield connection


async def get_repository() -> AsyncGenerator[PostgresRepository, None]:
    """
    FastAPI dependency yielding a repository bound to one pooled connection.

    Usage in routes:
        @router.get("/positions/{position_id}")
        async def get_position(repo: Annotated[Repository, Depends(get_repository)]):
            ...
    """
    async with get_db_connection() as conn:
        yield PostgresRepository(conn)
