"""
cache/redis_store.py -- Redis-backed key-value cache with per-entry TTL.

Same contract as cache/store.SQLiteCache, mapped onto Redis commands:

    set    -> SET key value EX ttl
    get    -> GET key
    delete -> DEL key
    pop    -> GETDEL key   (Redis >= 6.2; atomic on the server)

Expiry is enforced by Redis itself, so there is no purge_expired() here.
Every redis.RedisError is re-raised as cache.store.CacheError so callers
handle one exception type regardless of backend.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

from cache.store import CacheError

logger = logging.getLogger("forum.cache")


class RedisCache:
    """Thin wrapper over a synchronous redis-py client.

    Usage:
        cache = RedisCache.from_url("redis://localhost:6379/0")
        cache.set("sess:abc", '{"userId": 1}', ttl=3600)
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCache:
        """Build a cache from a redis:// URL. Responses are decoded to str."""
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self._client.set(key, value, ex=ttl)
        except redis.RedisError as exc:
            raise CacheError(str(exc)) from exc

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise CacheError(str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            raise CacheError(str(exc)) from exc

    def pop(self, key: str) -> Optional[str]:
        try:
            return self._client.getdel(key)
        except redis.RedisError as exc:
            raise CacheError(str(exc)) from exc

    def ping(self) -> bool:
        """Return True if the server answers PING. Used by the health check."""
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    def close(self) -> None:
        self._client.close()
