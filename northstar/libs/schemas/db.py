"""Shared asyncpg pool for the Postgres memory backend and migrations."""

from __future__ import annotations

import asyncio
import logging

import asyncpg

from .settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_POOL: asyncpg.Pool | None = None
_POOL_LOCK = asyncio.Lock()


async def _create_pool(settings: AppSettings) -> asyncpg.Pool:
    # Statement caching off: the pool may sit behind pgbouncer in transaction mode.
    return await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=settings.postgres_pool_min_size,
        max_size=max(settings.postgres_pool_min_size, settings.postgres_pool_max_size),
        command_timeout=60,
        statement_cache_size=0,
        max_inactive_connection_lifetime=300,
    )


async def get_async_pool() -> asyncpg.Pool:
    """Return the process-wide pool, creating it on first use."""

    global _POOL
    if _POOL is not None:
        return _POOL
    async with _POOL_LOCK:
        if _POOL is None:
            _POOL = await _create_pool(get_settings())
            logger.info("postgres_pool_created")
    return _POOL


async def close_async_pool() -> None:
    global _POOL
    pool, _POOL = _POOL, None
    if pool is not None:
        await pool.close()
        logger.info("postgres_pool_closed")


__all__ = ["close_async_pool", "get_async_pool"]
