"""
Walk snapshot cache.

Every open tracking view polls its walk every 5 seconds; snapshots are kept
in Redis for a few seconds and dropped on every mutation of the walk.
"""

import json
import logging
from typing import Any, Optional

from petwash.app.core import redis_client as redis_client_module
from petwash.app.core.config import settings

logger = logging.getLogger("petwash.cache")

SNAPSHOT_KEY_PREFIX = "walk:snapshot:"


def snapshot_key(walk_id: int) -> str:
    return f"{SNAPSHOT_KEY_PREFIX}{walk_id}"


class CacheService:

    @staticmethod
    async def get(key: str) -> Optional[Any]:
        try:
            raw = await redis_client_module.redis_client.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    @staticmethod
    async def set(key: str, data: Any, ttl_seconds: int = None):
        ttl = ttl_seconds or settings.walk_snapshot_cache_ttl_seconds
        try:
            await redis_client_module.redis_client.set(key, json.dumps(data), ex=ttl)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    @staticmethod
    async def delete(key: str):
        try:
            await redis_client_module.redis_client.delete(key)
        except Exception as e:
            logger.warning("Cache invalidation failed for %s: %s", key, e)
