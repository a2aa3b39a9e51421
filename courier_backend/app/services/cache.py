"""
Caching service for read-heavy views.

Thin JSON wrapper over Redis. Redis failures are logged and treated as a
cache miss, never as a failed request.
"""

import json
import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from courier_backend.app.core import redis_client as redis_module

logger = logging.getLogger(__name__)

OVERVIEW_KEY = "courier:overview"


class CacheService:

    @staticmethod
    async def get(key: str) -> Optional[Any]:
        try:
            raw = await redis_module.redis_client.get(key)
        except (RedisError, OSError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    @staticmethod
    async def set(key: str, data: Any, ttl_seconds: int = 300):
        try:
            await redis_module.redis_client.set(key, json.dumps(data), ex=ttl_seconds)
        except (RedisError, OSError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    @staticmethod
    async def delete(key: str):
        try:
            await redis_module.redis_client.delete(key)
        except (RedisError, OSError) as e:
            logger.warning("Cache invalidation failed for %s: %s", key, e)


async def invalidate_overview():
    """Drop the cached dashboard counters after a parcel or dispute change."""
    await CacheService.delete(OVERVIEW_KEY)
