# src/taskgraph/cache/backends.py

"""
Cache backends (key/value with TTL).

- MemoryCacheBackend: per-process dict, monotonic-clock expiry.
- RedisCacheBackend: shared Redis, JSON values, SETEX expiry.

Both return None on a miss.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

import redis

logger = logging.getLogger(__name__)


class MemoryCacheBackend:
    """
    Expired entries are dropped when read, and swept on set() at most once per
    `purge_interval` seconds, so keys that are never read again do not pile up.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._purge_interval = float(purge_interval)
        self._next_purge = 0.0
        self._lock = threading.Lock()
        self._items: dict[str, tuple[float, Any]] = {}

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._items.items() if expires_at <= now]
        for key in expired:
            del self._items[key]
        self._next_purge = now + self._purge_interval
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, value = item
            if expires_at <= self._clock():
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        with self._lock:
            now = self._clock()
            if now >= self._next_purge:
                self._purge_expired(now)
            self._items[key] = (now + float(ttl), value)

    def forget(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def flush(self, prefix: str = "") -> None:
        with self._lock:
            if not prefix:
                self._items.clear()
                return
            for key in [k for k in self._items if k.startswith(prefix)]:
                del self._items[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class RedisCacheBackend:
    """
    Redis-backed cache.

    Values are JSON-encoded; only JSON-friendly values (lists, dicts, bools) are cached.
    flush() deletes keys under the prefix with SCAN, never FLUSHDB.
    redis.RedisError propagates so the caller can surface it.
    """

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
        logger.info("[REDIS] Connected to %s", url)
        return cls(client)

    def get(self, key: str) -> Any | None:
        raw = self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[REDIS] Dropping undecodable cache entry %s", key)
            self.client.delete(key)
            return None

    def set(self, key: str, value: Any, ttl: float) -> None:
        seconds = int(ttl)
        if seconds <= 0:
            return
        self.client.setex(key, seconds, json.dumps(value))

    def forget(self, key: str) -> None:
        self.client.delete(key)

    def flush(self, prefix: str = "") -> None:
        keys = list(self.client.scan_iter(match=f"{prefix}*"))
        if keys:
            self.client.delete(*keys)
        logger.info("[REDIS] Flushed %d keys prefix=%r", len(keys), prefix)
