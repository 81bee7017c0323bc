"""
Redis client management for Harbormaster.

Redis backs the distributed per-infra lock. It is only connected when
single-flight dispatch is enabled with the redis lock backend.
"""

import redis.asyncio as aioredis

from harbormaster.config import LockBackend, settings
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

# Module-level client reference, initialized in lifespan
_redis: aioredis.Redis | None = None


def redis_required() -> bool:
    """Whether the current configuration needs a Redis connection."""
    ops = settings.operations
    return ops.single_flight and ops.lock_backend == LockBackend.REDIS


async def init_redis() -> None:
    """Initialize Redis connection pool if the configuration needs one."""
    global _redis  # noqa: PLW0603
    if not redis_required():
        return
    logger.info("Initializing Redis connection")
    _redis = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    await _redis.ping()
    logger.info("Redis connection established")


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis  # noqa: PLW0603
    if _redis is not None:
        logger.info("Closing Redis connection pool")
        await _redis.aclose()
        _redis = None


def get_redis_client() -> aioredis.Redis:
    """Return the Redis client. Raises if not initialized."""
    if _redis is None:
        raise RuntimeError("Redis client not initialized: call init_redis() first")
    return _redis


async def get_redis_health() -> bool:
    """Check Redis health for readiness probe. Healthy when not required."""
    if not redis_required():
        return True
    try:
        if _redis is None:
            return False
        await _redis.ping()
        return True
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return False
