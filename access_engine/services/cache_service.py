"""Redis cache for resolved permission sets."""

import json
import logging
from typing import Iterable, Optional, Any

import redis

from access_engine.core.config import settings

logger = logging.getLogger("access_engine")

PERMISSIONS_KEY_PREFIX = "perms:user:"


class CacheService:
    """Redis-backed caching service.

    Every operation treats Redis being unreachable as a cache miss.
    """

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self._url = url or settings.REDIS_URL
        self._enabled = settings.PERMISSION_CACHE_ENABLED if enabled is None else enabled
        self._client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                max_connections=100,
            )
        return self._client

    def get(self, key: str) -> Optional[str]:
        """Get a cached value by key."""
        if not self._enabled:
            return None
        try:
            return self.client.get(key)
        except redis.RedisError:
            return None

    def set(self, key: str, value: str, ttl_seconds: int = 600) -> None:
        """Set a cached value with TTL."""
        if not self._enabled:
            return
        try:
            self.client.setex(key, ttl_seconds, value)
        except redis.RedisError:
            pass  # Cache failures are non-fatal

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        raw = self.get(key)
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: int = 600) -> None:
        """Serialize and cache a JSON value."""
        self.set(key, json.dumps(value, default=str), ttl_seconds)

    def delete(self, key: str) -> None:
        """Delete a cached key."""
        if not self._enabled:
            return
        try:
            self.client.delete(key)
        except redis.RedisError:
            pass

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a pattern."""
        if not self._enabled:
            return
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError:
            pass

    # ---- effective permission sets ----

    def get_permissions(self, user_id: str) -> Optional[frozenset]:
        cached = self.get_json(PERMISSIONS_KEY_PREFIX + user_id)
        if cached is None:
            return None
        return frozenset(cached)

    def set_permissions(
        self, user_id: str, permissions: Iterable[str], ttl_seconds: Optional[int] = None
    ) -> None:
        self.set_json(
            PERMISSIONS_KEY_PREFIX + user_id,
            sorted(permissions),
            ttl_seconds or settings.PERMISSION_CACHE_TTL_SECONDS,
        )

    def invalidate_user(self, user_id: str) -> None:
        """Drop the cached set of one user (override or assignment changed)."""
        self.delete(PERMISSIONS_KEY_PREFIX + user_id)

    def invalidate_all_permissions(self) -> None:
        """Drop every cached set (a role's permissions changed)."""
        logger.debug("Invalidating all cached permission sets")
        self.invalidate_pattern(PERMISSIONS_KEY_PREFIX + "*")

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


cache_service = CacheService()
