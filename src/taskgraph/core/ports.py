# src/taskgraph/core/ports.py

"""
Ports (interfaces) used by the graph engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the edge store and the cache swappable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractContextManager
from typing import Any, Protocol

from ..tasks.task_models import DependencyStats, Direction, TaskStatus, WalkStep


class EdgeReader(Protocol):
    """
    Read side of the edge store.

    Implemented by the store itself (short-lived connection per call) and by an open
    transaction (reads see the transaction's own snapshot and writes).
    """

    def task_exists(self, task_id: str) -> bool: ...
    def task_status(self, task_id: str) -> TaskStatus | None: ...
    def task_statuses(self, task_ids: Sequence[str]) -> dict[str, TaskStatus]: ...
    def edge_exists(self, task_id: str, dependency_id: str) -> bool: ...

    # (task_id, dependency_task_id) pairs whose task_id is in task_ids
    def edges_from(self, task_ids: Sequence[str]) -> list[tuple[str, str]]: ...

    # (task_id, dependency_task_id) pairs whose dependency_task_id is in dependency_ids
    def edges_to(self, dependency_ids: Sequence[str]) -> list[tuple[str, str]]: ...

    def incomplete_dependency_count(self, task_id: str) -> int: ...

    # task_id -> (total direct dependencies, completed direct dependencies)
    def completion_counts(self, task_ids: Sequence[str]) -> dict[str, tuple[int, int]]: ...

    # Single store-side recursive traversal (only used by RecursiveQueryStrategy).
    def recursive_walk(self, root_id: str, direction: Direction) -> list[WalkStep]: ...


class GraphTransaction(EdgeReader, Protocol):
    def insert_edge(self, task_id: str, dependency_id: str) -> None: ...
    def delete_edge(self, task_id: str, dependency_id: str) -> int: ...
    def delete_task(self, task_id: str) -> int: ...


class GraphStore(EdgeReader, Protocol):
    """Transactional edge store consumed by the engine."""

    def transaction(self) -> AbstractContextManager[GraphTransaction]: ...
    def probe_recursive_query(self) -> bool: ...
    def version(self) -> str: ...
    def dependency_stats(self) -> DependencyStats: ...


class TraversalStrategy(Protocol):
    """How a breadth-first walk over the edge set is executed against a reader."""

    name: str

    def walk(self, reader: EdgeReader, root_id: str, direction: Direction) -> list[WalkStep]: ...


class CacheBackend(Protocol):
    """
    Key/value store with TTL.

    get() returns None on miss; the engine never caches None values.
    """

    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any, ttl: float) -> None: ...
    def forget(self, key: str) -> None: ...
    def flush(self, prefix: str = "") -> None: ...
