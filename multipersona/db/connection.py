"""Shared psycopg v3 connection pool for the postgres storage backend."""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
import structlog
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from multipersona.config import get_settings
from multipersona.personas.errors import TransientStoreError

logger = structlog.get_logger()

_pool: Optional[AsyncConnectionPool] = None


async def init_db() -> None:
    """Open the pool. Call once from the application lifespan.

    Raises:
        RuntimeError: If the pool is already open.
        TransientStoreError: If the database cannot be reached.
    """
    global _pool
    if _pool is not None:
        raise RuntimeError("Database pool already initialized. Call close_db() first.")

    settings = get_settings()
    pool = AsyncConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        open=False,
    )
    try:
        await pool.open(wait=True)
    except (psycopg.OperationalError, TimeoutError) as exc:
        raise TransientStoreError(f"Database unavailable: {exc}") from exc

    _pool = pool
    logger.info(
        "db_pool_opened",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )


async def close_db() -> None:
    """Close the pool if it is open."""
    global _pool
    if _pool is None:
        return
    await _pool.close()
    _pool = None
    logger.info("db_pool_closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[AsyncConnection]:
    """Borrow a pooled connection.

    Raises:
        RuntimeError: If init_db() has not run.
        TransientStoreError: If the database cannot be reached.
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_db() first.")

    try:
        async with _pool.connection() as conn:
            yield conn
    except psycopg.OperationalError as exc:
        raise TransientStoreError(f"Database unavailable: {exc}") from exc
