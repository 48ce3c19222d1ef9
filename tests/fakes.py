# tests/fakes.py

from __future__ import annotations

import contextlib
import fnmatch
import sqlite3
from collections.abc import Iterator
from typing import Any

from taskgraph.tasks.task_store import TaskStore


class CountingStore:
    """
    Transparent wrapper that records every store attribute accessed.

    Used to assert that rejected calls never reach the store.
    """

    def __init__(self, inner: Any) -> None:
        self._inner = inner
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        self.calls.append(name)
        return getattr(self._inner, name)


class NoRecursionStore:
    """
    Store that behaves like an engine without recursive query support:
    the probe and the recursive walk both fail with a syntax error.
    """

    def __init__(self, inner: Any) -> None:
        self._inner = inner

    def probe_recursive_query(self) -> bool:
        raise sqlite3.OperationalError('near "RECURSIVE": syntax error')

    def recursive_walk(self, root_id: str, direction: Any) -> Any:
        raise sqlite3.OperationalError('near "RECURSIVE": syntax error')

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


class _FailingInsertTx:
    def __init__(self, inner: Any) -> None:
        self._inner = inner

    def insert_edge(self, task_id: str, dependency_id: str) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


class FailingInsertStore:
    """Real transactions, but every edge insert fails at the storage level."""

    def __init__(self, inner: Any) -> None:
        self._inner = inner

    @contextlib.contextmanager
    def transaction(self) -> Iterator[_FailingInsertTx]:
        with self._inner.transaction() as tx:
            yield _FailingInsertTx(tx)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


class FakeRedis:
    """
    In-memory stand-in for the redis.Redis methods RedisCacheBackend uses.
    TTLs are recorded, not enforced.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def setex(self, key: str, seconds: int, value: str) -> None:
        self.data[key] = value
        self.ttls[key] = seconds

    def delete(self, *keys: str) -> int:
        n = 0
        for k in keys:
            if self.data.pop(k, None) is not None:
                n += 1
            self.ttls.pop(k, None)
        return n

    def scan_iter(self, match: str = "*") -> Iterator[str]:
        yield from [k for k in self.data if fnmatch.fnmatchcase(k, match)]


class BrokenCacheBackend:
    """Cache backend whose every call fails (e.g. Redis went away)."""

    def get(self, key: str) -> Any:
        raise ConnectionError("cache down")

    def set(self, key: str, value: Any, ttl: float) -> None:
        raise ConnectionError("cache down")

    def forget(self, key: str) -> None:
        raise ConnectionError("cache down")

    def flush(self, prefix: str = "") -> None:
        raise ConnectionError("cache down")


class StepCountingStore(TaskStore):
    """
    TaskStore that counts SQLite VM instructions (in blocks of 100) on every connection.

    A deterministic stand-in for query cost.
    """

    steps = 0

    def _get_conn(self, *, autocommit: bool = False) -> sqlite3.Connection:
        conn = super()._get_conn(autocommit=autocommit)

        def tick() -> int:
            self.steps += 1
            return 0

        conn.set_progress_handler(tick, 100)
        return conn
