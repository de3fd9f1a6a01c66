"""Cache backends for short-lived read models."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from redis.exceptions import RedisError

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Protocol for cache providers (Redis, memory, etc.)."""

    async def get(self, key: str) -> str | None:
        """Get cached value by key."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set cached value with optional TTL."""

    async def delete(self, key: str) -> None:
        """Delete cached value by key."""


class NoopCacheBackend:
    """Backend used when Redis is not configured."""

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None


class RedisCacheBackend:
    """Redis cache shared across app instances.

    Redis errors are logged and treated as cache misses so that reads fall back
    to the database.
    """

    def __init__(self, redis_url: str, client: Any | None = None) -> None:
        self._redis_url = redis_url
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            from redis.asyncio import from_url

            self._client = from_url(self._redis_url, encoding="utf-8", decode_responses=True)
        return self._client

    async def get(self, key: str) -> str | None:
        try:
            return await self._get_client().get(key)
        except RedisError:
            logger.warning("Redis unavailable, reading %s without cache", key, exc_info=True)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            await self._get_client().set(key, value, ex=ttl_seconds or None)
        except RedisError:
            logger.warning("Redis unavailable, skipping cache write for %s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self._get_client().delete(key)
        except RedisError:
            logger.warning("Redis unavailable, could not invalidate %s", key, exc_info=True)


_cache_backend: CacheBackend | None = None


def get_cache_backend() -> CacheBackend:
    """Return shared cache backend for configured Redis URL."""
    global _cache_backend
    if _cache_backend is None:
        settings = get_settings()
        if settings.redis_url and settings.timeslot_cache_ttl_seconds > 0:
            _cache_backend = RedisCacheBackend(settings.redis_url)
        else:
            _cache_backend = NoopCacheBackend()
    return _cache_backend
