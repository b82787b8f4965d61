"""Shared Redis client.

Redis backs two optional things: the dashboard cache and the tier sweep
limiter. Callers in :mod:`agencydesk.core.cache` and the health checks
handle connection errors themselves, so this module only owns the client.
"""

import asyncio
import logging

import redis.asyncio as aioredis

from agencydesk.core.config import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None
_connect_lock = asyncio.Lock()


def _build_client() -> aioredis.Redis:
    return aioredis.from_url(
        str(settings.REDIS_URL),
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        health_check_interval=30,
    )


async def get_redis() -> aioredis.Redis:
    """Return the process-wide client, connecting on first use.

    A failed first ping is raised and nothing is kept, so the next call
    tries again.
    """
    global _client

    if _client is not None:
        return _client

    async with _connect_lock:
        if _client is None:
            client = _build_client()
            try:
                await client.ping()
            except Exception:
                await client.aclose()
                raise
            logger.info("Redis client ready (max %s connections)", settings.REDIS_MAX_CONNECTIONS)
            _client = client

    return _client


async def close_redis() -> None:
    """Close the client and the pool it owns."""
    global _client

    client, _client = _client, None
    if client is not None:
        await client.aclose()
