"""
Per-user cache of the serialized study plan.

Backed by Redis when REDIS_URL is set and reachable; otherwise every read is
a miss. Redis errors are logged and treated as misses so the database stays
the source of truth.
"""
import json
import logging
import os
from typing import List, Optional

import redis

logger = logging.getLogger(__name__)

PLAN_CACHE_PREFIX = "timepilot:plan:"
PLAN_CACHE_TTL = 300  # seconds


def plan_cache_key(user_id: int) -> str:
    return f"{PLAN_CACHE_PREFIX}{user_id}"


class PlanCache:
    """Read-through cache for ``GET /api/study-plan`` payloads."""

    def __init__(self, client=None, ttl: int = PLAN_CACHE_TTL):
        self._client = client
        self.ttl = ttl

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def get_plans(self, user_id: int) -> Optional[List[dict]]:
        if not self.enabled:
            return None
        try:
            raw = self._client.get(plan_cache_key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Plan cache read failed for user {user_id}: {e}")
            return None
        return json.loads(raw) if raw else None

    def store_plans(self, user_id: int, payload: List[dict]) -> None:
        if not self.enabled:
            return
        try:
            self._client.set(plan_cache_key(user_id), json.dumps(payload), ex=self.ttl)
        except redis.RedisError as e:
            logger.warning(f"Plan cache write failed for user {user_id}: {e}")

    def invalidate(self, user_id: int) -> None:
        if not self.enabled:
            return
        try:
            self._client.delete(plan_cache_key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Plan cache invalidation failed for user {user_id}: {e}")


def _connect(url: Optional[str] = None):
    """Redis client for ``url`` (default REDIS_URL), or None when unset or unreachable."""
    url = url if url is not None else os.getenv("REDIS_URL")
    if not url:
        return None
    if not url.startswith(('redis://', 'rediss://', 'unix://')):
        logger.warning("Invalid REDIS_URL scheme - must start with redis://, rediss://, or unix://")
        return None
    try:
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=5)
        client.ping()
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Redis unavailable, plan cache disabled: {e}")
        return None
    logger.info("Plan cache connected to Redis")
    return client


plan_cache = PlanCache(_connect())
