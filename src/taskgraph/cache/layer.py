# src/taskgraph/cache/layer.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import TypeVar

from ..core.ports import CacheBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_PREFIX = "task_dependencies:"


class Namespace(StrEnum):
    DEPENDENTS = "dependents"
    DEPENDENCIES = "dependencies"
    COMPLETION = "completion"
    HIERARCHY = "hierarchy"


class CacheLayer:
    """
    Memoizes graph query results per (namespace, task_id).

    Entries are never authoritative: everything can be rebuilt from the store.
    A producer that raises leaves the cache untouched.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._backend = backend
        self._ttl = float(ttl)
        self._prefix = prefix

    @property
    def ttl(self) -> float:
        return self._ttl

    def key(self, namespace: Namespace, task_id: str) -> str:
        return f"{self._prefix}{namespace.value}:{task_id}"

    def get_or_compute(
        self,
        namespace: Namespace,
        task_id: str,
        producer: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        key = self.key(namespace, task_id)
        cached = self._backend.get(key)
        if cached is not None:
            logger.debug("Cache hit %s", key)
            return cached

        logger.debug("Cache miss %s", key)
        value = producer()
        if value is not None:
            self._backend.set(key, value, self._ttl if ttl is None else float(ttl))
        return value

    def invalidate(self, namespace: Namespace, task_id: str) -> None:
        self._backend.forget(self.key(namespace, task_id))

    def invalidate_all(self, task_id: str) -> None:
        for ns in Namespace:
            self.invalidate(ns, task_id)

    def invalidate_many(self, task_ids: Iterable[str]) -> int:
        n = 0
        for task_id in dict.fromkeys(task_ids):
            self.invalidate_all(task_id)
            n += 1
        logger.debug("Invalidated cache for %d tasks", n)
        return n

    def flush_all(self) -> None:
        self._backend.flush(self._prefix)
        logger.info("Dependency cache flushed prefix=%s", self._prefix)
