"""Redis connection management.

Redis is the distributed tier of the code search cache. It is optional:
when ``settings.redis_enabled`` is false, ``get_redis`` returns None and
callers fall back to the in-process tier and the database.
"""

import logging

from redis.asyncio import Redis

from coding_core.core.config import settings

logger = logging.getLogger(__name__)

# Redis connection instance (lazy initialized)
_redis_client: Redis | None = None


def get_redis() -> Redis | None:
    """Get or create Redis connection.

    Returns an asyncio Redis client configured from settings.
    Connection is lazily created on first call.

    Returns:
        Redis client instance, or None when Redis is disabled or the
        client could not be created.
    """
    global _redis_client
    if not settings.redis_enabled:
        return None
    if _redis_client is None:
        try:
            _redis_client = Redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        except Exception as e:
            logger.warning(f"Redis client unavailable, continuing without it: {e}")
            return None
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection.

    Should be called during application shutdown.
    """
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def ping_redis() -> bool:
    """Check if Redis connection is healthy.

    Returns:
        True if Redis responds to ping, False otherwise.
    """
    try:
        client = get_redis()
        if client is None:
            return False
        return bool(await client.ping())
    except Exception:
        return False
