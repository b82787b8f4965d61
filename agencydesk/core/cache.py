"""Redis caching utilities.

The cache is best-effort: every helper logs and swallows Redis errors so a
missing or unhealthy Redis never fails a billing request.
"""

import json
import logging
from typing import Any

from agencydesk.db.redis import get_redis

logger = logging.getLogger(__name__)


async def cache_get(key: str) -> Any | None:
    """Get value from cache.

    Args:
        key: Cache key

    Returns:
        Cached value or None if not found or error occurred
    """
    try:
        redis = await get_redis()
        value = await redis.get(key)

        if value is not None:
            logger.debug("Cache hit: %s", key)
            return json.loads(value)

        logger.debug("Cache miss: %s", key)
        return None

    except Exception:
        logger.exception("Error getting from cache key '%s'", key)
        return None


async def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    """Set value in cache with TTL.

    Args:
        key: Cache key
        value: Value to cache (must be JSON serializable, Decimals/dates become strings)
        ttl: Time to live in seconds (default: 300)

    Returns:
        True if successful, False otherwise
    """
    try:
        redis = await get_redis()
        serialized = json.dumps(value, default=str)
        await redis.setex(key, ttl, serialized)
        logger.debug("Cache set: %s (TTL: %ss)", key, ttl)
        return True

    except Exception:
        logger.exception("Error setting cache key '%s'", key)
        return False


async def cache_invalidate(pattern: str) -> int:
    """Invalidate all cache keys matching a pattern.

    Args:
        pattern: Redis key pattern (e.g., "dashboard:*")

    Returns:
        Number of keys deleted
    """
    try:
        redis = await get_redis()
        keys = []

        async for key in redis.scan_iter(match=pattern):
            keys.append(key)

        if keys:
            deleted: int = await redis.delete(*keys)
            logger.info("Cache invalidated: %s keys matching '%s'", deleted, pattern)
            return deleted

        return 0

    except Exception:
        logger.exception("Error invalidating cache pattern '%s'", pattern)
        return 0


async def cache_acquire(key: str, ttl: int) -> bool:
    """Claim a key for ``ttl`` seconds if nobody holds it.

    Used as a coarse rate limiter for batch jobs. When Redis is unreachable
    the claim is granted so the job still runs.

    Args:
        key: Lock key
        ttl: Seconds the claim is held

    Returns:
        True if the caller may proceed, False if the key is already held
    """
    try:
        redis = await get_redis()
        acquired = await redis.set(key, "1", ex=ttl, nx=True)
        return bool(acquired)

    except Exception:
        logger.exception("Error acquiring cache key '%s', proceeding without limit", key)
        return True
