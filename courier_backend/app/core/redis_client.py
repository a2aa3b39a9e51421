"""
Redis client initialization and connection management.

Redis backs the overview cache. The courier core stays correct without it;
cache reads and writes degrade to misses when Redis is unreachable.
"""

import redis.asyncio as redis
from courier_backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except (redis.RedisError, OSError):
        return False
