# src/taskgraph/graph/service.py

"""
Dependency graph service.

Entry point used by the task layer:
- add/remove dependency edges (validated, cycle-guarded, transactional),
- transitive queries and completion checks (cached),
- notification hooks for status changes and deletions (cache invalidation).

Every failure is a GraphError; store and cache exceptions are wrapped in StorageError.
Cache invalidation runs after COMMIT and before the call returns.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

from ..cache.layer import CacheLayer, Namespace
from ..core.errors import DuplicateError, GraphError, NotFoundError, StorageError, ValidationError
from ..core.ports import EdgeReader, GraphStore, TraversalStrategy
from ..tasks.task_models import DependencyEdge, DependencyStats, Direction, HierarchyNode, StoreInfo
from .capability import Capability, CapabilityProbe
from .completion import CompletionGate
from .guard import CycleGuard
from .strategies import IterativeStrategy, RecursiveQueryStrategy
from .traversal import TraversalEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _clean_id(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string id")
    return value.strip()


class DependencyGraphService:
    def __init__(
        self,
        store: GraphStore,
        engine: TraversalEngine,
        cache: CacheLayer,
        *,
        probe: CapabilityProbe | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._cache = cache
        self._probe = probe or CapabilityProbe(store)
        self._guard = CycleGuard(engine)
        self._gate = CompletionGate(store)

    @property
    def engine(self) -> TraversalEngine:
        return self._engine

    # ---- error plumbing ----

    @staticmethod
    def _storage_call(what: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except GraphError:
            raise
        except Exception as e:
            logger.exception("%s failed", what)
            raise StorageError(f"{what} failed: {e}") from e

    def _invalidate_after_commit(self, task_ids: Iterable[str], what: str) -> int:
        try:
            return self._cache.invalidate_many(task_ids)
        except Exception as e:
            logger.exception("Cache invalidation failed after %s", what)
            raise StorageError(
                f"{what} was committed but cache invalidation failed; flush the cache: {e}"
            ) from e

    def _require_task(self, reader: EdgeReader, task_id: str) -> None:
        if not reader.task_exists(task_id):
            raise NotFoundError(f"Task {task_id} does not exist")

    def _edge_impact(self, reader: EdgeReader, task_id: str, dependency_id: str) -> list[str]:
        """
        Tasks whose cached views contain edge (task, dependency):
        the task and everything that depends on it see new/removed dependencies,
        the dependency and everything it depends on see new/removed dependents.
        """
        return [
            task_id,
            dependency_id,
            *self._engine.descendants(task_id, reader=reader),
            *self._engine.ancestors(dependency_id, reader=reader),
        ]

    # ---- mutations ----

    def add_dependency(self, task_id: str, dependency_id: str) -> DependencyEdge:
        t = _clean_id(task_id, "task_id")
        d = _clean_id(dependency_id, "dependency_id")
        if t == d:
            raise ValidationError(f"Task {t} cannot depend on itself")

        def _run() -> list[str]:
            with self._store.transaction() as tx:
                self._require_task(tx, t)
                self._require_task(tx, d)
                if tx.edge_exists(t, d):
                    raise DuplicateError(f"Dependency {t} -> {d} already exists")
                self._guard.check(t, d, reader=tx)
                affected = self._edge_impact(tx, t, d)
                tx.insert_edge(t, d)
                return affected

        affected = self._storage_call(f"add_dependency({t}, {d})", _run)
        n = self._invalidate_after_commit(affected, f"add_dependency({t}, {d})")
        logger.info("Dependency added %s -> %s (cache invalidated for %d tasks)", t, d, n)
        return DependencyEdge(task_id=t, dependency_task_id=d)

    def remove_dependency(self, task_id: str, dependency_id: str) -> None:
        t = _clean_id(task_id, "task_id")
        d = _clean_id(dependency_id, "dependency_id")

        def _run() -> list[str]:
            with self._store.transaction() as tx:
                if not tx.edge_exists(t, d):
                    raise NotFoundError(f"Dependency {t} -> {d} does not exist")
                affected = self._edge_impact(tx, t, d)
                tx.delete_edge(t, d)
                return affected

        affected = self._storage_call(f"remove_dependency({t}, {d})", _run)
        n = self._invalidate_after_commit(affected, f"remove_dependency({t}, {d})")
        logger.info("Dependency removed %s -> %s (cache invalidated for %d tasks)", t, d, n)

    def would_create_cycle(self, task_id: str, dependency_id: str) -> bool:
        t = _clean_id(task_id, "task_id")
        d = _clean_id(dependency_id, "dependency_id")
        return self._storage_call(
            f"would_create_cycle({t}, {d})",
            lambda: self._guard.would_create_cycle(t, d),
        )

    # ---- cached queries ----

    def dependents(self, task_id: str) -> list[str]:
        """All tasks that transitively depend on task_id."""
        t = _clean_id(task_id, "task_id")

        def _compute() -> list[str]:
            self._require_task(self._store, t)
            return self._engine.descendants(t)

        return list(
            self._storage_call(
                f"dependents({t})",
                lambda: self._cache.get_or_compute(Namespace.DEPENDENTS, t, _compute),
            )
        )

    def dependencies(self, task_id: str) -> list[str]:
        """All tasks task_id transitively depends on."""
        t = _clean_id(task_id, "task_id")

        def _compute() -> list[str]:
            self._require_task(self._store, t)
            return self._engine.ancestors(t)

        return list(
            self._storage_call(
                f"dependencies({t})",
                lambda: self._cache.get_or_compute(Namespace.DEPENDENCIES, t, _compute),
            )
        )

    def is_completion_allowed(self, task_id: str) -> bool:
        t = _clean_id(task_id, "task_id")

        def _compute() -> bool:
            self._require_task(self._store, t)
            return self._gate.is_completion_allowed(t)

        return bool(
            self._storage_call(
                f"is_completion_allowed({t})",
                lambda: self._cache.get_or_compute(Namespace.COMPLETION, t, _compute),
            )
        )

    def hierarchy(self, task_id: str) -> list[HierarchyNode]:
        """Breadth-first view of everything task_id depends on, root first."""
        t = _clean_id(task_id, "task_id")

        def _compute() -> list[dict[str, Any]]:
            self._require_task(self._store, t)
            return [n.to_dict() for n in self._engine.hierarchy(t, Direction.DEPENDENCIES)]

        raw = self._storage_call(
            f"hierarchy({t})",
            lambda: self._cache.get_or_compute(Namespace.HIERARCHY, t, _compute),
        )
        return [HierarchyNode.from_dict(r) for r in raw]

    # ---- uncached queries ----

    def direct_dependencies(self, task_id: str) -> list[str]:
        t = _clean_id(task_id, "task_id")
        return self._storage_call(
            f"direct_dependencies({t})",
            lambda: [d for _, d in self._store.edges_from([t])],
        )

    def direct_dependents(self, task_id: str) -> list[str]:
        t = _clean_id(task_id, "task_id")
        return self._storage_call(
            f"direct_dependents({t})",
            lambda: [dep for dep, _ in self._store.edges_to([t])],
        )

    def batch_completion(self, task_ids: Sequence[str]) -> dict[str, bool]:
        ids = [_clean_id(t, "task_id") for t in task_ids]
        return self._storage_call("batch_completion", lambda: self._gate.batch_completion(ids))

    # ---- notification hooks (called by the task layer) ----

    def on_status_changed(self, task_id: str) -> int:
        """Invalidate the task and everything that transitively depends on it."""
        t = _clean_id(task_id, "task_id")
        downstream = self._storage_call(f"on_status_changed({t})", lambda: self._engine.descendants(t))
        n = self._invalidate_after_commit([t, *downstream], f"status change of {t}")
        logger.info("Status changed task=%s (cache invalidated for %d tasks)", t, n)
        return n

    def deletion_impact(self, task_id: str) -> list[str]:
        """Tasks whose cached views mention task_id. Capture before deleting the row."""
        t = _clean_id(task_id, "task_id")
        return self._storage_call(
            f"deletion_impact({t})",
            lambda: [t, *self._engine.descendants(t), *self._engine.ancestors(t)],
        )

    def on_task_deleted(self, task_id: str, affected: Iterable[str] | None = None) -> int:
        """
        Invalidate a deleted task and its former neighbours.

        Pass `affected` from deletion_impact() when the row is already gone;
        otherwise it is computed from the store now.
        """
        t = _clean_id(task_id, "task_id")
        ids = [t, *(affected if affected is not None else self.deletion_impact(t))]
        n = self._invalidate_after_commit(ids, f"deletion of {t}")
        logger.info("Task deleted task=%s (cache invalidated for %d tasks)", t, n)
        return n

    def delete_task(self, task_id: str) -> int:
        """Delete a task (its edges cascade) and invalidate everything that referenced it."""
        t = _clean_id(task_id, "task_id")

        def _run() -> list[str]:
            with self._store.transaction() as tx:
                self._require_task(tx, t)
                impact = [
                    *self._engine.descendants(t, reader=tx),
                    *self._engine.ancestors(t, reader=tx),
                ]
                tx.delete_task(t)
                return impact

        impact = self._storage_call(f"delete_task({t})", _run)
        return self.on_task_deleted(t, affected=impact)

    # ---- administration / diagnostics ----

    def flush_cache(self) -> None:
        self._storage_call("flush_cache", self._cache.flush_all)

    def stats(self) -> DependencyStats:
        return self._storage_call("stats", self._store.dependency_stats)

    def store_info(self) -> StoreInfo:
        capability = self._probe.detect()
        return StoreInfo(
            type=type(self._store).__name__,
            version=self._storage_call("version", self._store.version),
            supports_recursive=capability == Capability.RECURSIVE_QUERY,
            capability=capability.value,
            strategy=self._engine.strategy.name,
        )

    def benchmark(self, task_id: str, *, repeat: int = 3) -> dict[str, float]:
        """
        Time one uncached dependents walk per strategy (milliseconds, best of `repeat`).
        The recursive strategy is skipped when the store does not support it.
        """
        t = _clean_id(task_id, "task_id")
        self._storage_call(f"benchmark({t})", lambda: self._require_task(self._store, t))

        strategies: list[TraversalStrategy] = [IterativeStrategy()]
        if self._probe.detect() == Capability.RECURSIVE_QUERY:
            strategies.insert(0, RecursiveQueryStrategy())

        results: dict[str, float] = {}
        for strategy in strategies:
            best = float("inf")
            for _ in range(max(1, int(repeat))):
                start = time.perf_counter()
                self._storage_call(
                    f"benchmark[{strategy.name}]",
                    lambda: strategy.walk(self._store, t, Direction.DEPENDENTS),
                )
                best = min(best, (time.perf_counter() - start) * 1000.0)
            results[strategy.name] = round(best, 3)
        return results
