"""
asyncpg connection pool shared by the case repository, metrics persistence
and the digest job state.

One pool per process, created lazily on first use or eagerly from the
application lifespan:

    await init_db()

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT id FROM missing_cases")

    await close_db()

Pool sizing and the per-command timeout come from Settings
(DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_COMMAND_TIMEOUT_SECONDS).
"""

from typing import Any, List, Optional

import asyncpg
from asyncpg import Pool

from coldcase.core.config import get_settings


# Set by init_db(), cleared by close_db()
_pool: Optional[Pool] = None


# =============================================================================
# Lifecycle
# =============================================================================

async def init_db() -> Pool:
    """
    Create the pool if it does not exist yet and return it.

    Raises:
        asyncpg.PostgresError: The server rejected the connection.
        OSError: The host could not be reached.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout_seconds,
        )

    return _pool


async def get_db_pool() -> Pool:
    """Return the shared pool, creating it on first use."""
    if _pool is None:
        return await init_db()
    return _pool


async def close_db() -> None:
    """Close the shared pool; the next get_db_pool() opens a fresh one."""
    global _pool

    if _pool is not None:
        pool, _pool = _pool, None
        await pool.close()


# =============================================================================
# Query Helpers
# =============================================================================

async def execute_query(query: str, *args: Any) -> List[asyncpg.Record]:
    """
    Run a query on a pooled connection and return every row.

    Args:
        query: SQL with $1, $2, ... placeholders
        *args: Placeholder values
    """
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetch(query, *args)


async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """First row of the result, or None when the query returns nothing."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)
