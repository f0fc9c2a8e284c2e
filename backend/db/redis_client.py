"""
db/redis_client.py
-------------------
redis-py client singleton and the optimization result cache.

Key schema:

  tour-opt:{tour_id}:{md5(method + options)}
       Type : String (JSON of the /optimize response body)
       TTL  : OPTIMIZATION_CACHE_TTL  (default 3,600 s = 1 hour)

Degraded results are never stored.  An apply on a tour deletes every key
of that tour.  Redis errors are logged and behave as a cache miss.

Environment variables (set in config.py):
    REDIS_HOST, REDIS_PORT, REDIS_DB, REDIS_PASSWORD
    OPTIMIZATION_CACHE_ENABLED   default: false
    OPTIMIZATION_CACHE_TTL       default: 3600
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

import redis

import config

logger = logging.getLogger(__name__)

# Initialised lazily on first call to get_redis()
_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,   # return str, not bytes
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


def cache_key(tour_id: int, method: str, options_payload: dict) -> str:
    digest = hashlib.md5(
        json.dumps({"method": method, **options_payload}, sort_keys=True).encode("utf-8")
    ).hexdigest()
    return f"tour-opt:{tour_id}:{digest}"


class OptimizationCache:
    """
    Thin cache over a Redis client.

    *client* defaults to the process singleton; tests pass a double with the
    same get / setex / scan_iter / delete surface.
    """

    def __init__(self, client: Optional[Any] = None, ttl: int = config.OPTIMIZATION_CACHE_TTL) -> None:
        self._client = client
        self._ttl = ttl

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def get(self, tour_id: int, method: str, options_payload: dict) -> Optional[dict]:
        key = cache_key(tour_id, method, options_payload)
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Optimization cache read failed (%s): %s", key, exc)
            return None
        if raw is None:
            return None
        logger.info("Optimization cache hit for tour %s", tour_id)
        return json.loads(raw)

    def set(self, tour_id: int, method: str, options_payload: dict, body: dict) -> bool:
        """Store *body* unless it holds a degraded result. Returns True when written."""
        if body.get("optimizationResult", {}).get("degraded"):
            return False
        key = cache_key(tour_id, method, options_payload)
        try:
            self.client.setex(key, self._ttl, json.dumps(body, default=str))
        except redis.RedisError as exc:
            logger.warning("Optimization cache write failed (%s): %s", key, exc)
            return False
        return True

    def invalidate_tour(self, tour_id: int) -> int:
        """Delete all cached results for a tour. Returns the number of keys deleted."""
        try:
            keys = list(self.client.scan_iter(f"tour-opt:{tour_id}:*"))
            if keys:
                return self.client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("Optimization cache invalidation failed for tour %s: %s", tour_id, exc)
        return 0
