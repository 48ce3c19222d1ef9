# src/taskgraph/graph/traversal.py

from __future__ import annotations

import logging

from ..core.ports import EdgeReader, TraversalStrategy
from ..tasks.task_models import Direction, HierarchyNode, WalkStep

logger = logging.getLogger(__name__)


class TraversalEngine:
    """
    Transitive queries over the dependency edges.

    Every query is derived from one strategy walk; callers never see which strategy
    is active. Pass `reader` to run against an open transaction instead of the store.
    """

    def __init__(self, store: EdgeReader, strategy: TraversalStrategy) -> None:
        self._store = store
        self._strategy = strategy

    @property
    def strategy(self) -> TraversalStrategy:
        return self._strategy

    def walk(
        self,
        root_id: str,
        direction: Direction,
        *,
        reader: EdgeReader | None = None,
    ) -> list[WalkStep]:
        return self._strategy.walk(reader or self._store, root_id, direction)

    def descendants(self, root_id: str, *, reader: EdgeReader | None = None) -> list[str]:
        """Tasks that transitively depend on root_id, ordered by (distance, id)."""
        return [s.id for s in self.walk(root_id, Direction.DEPENDENTS, reader=reader)[1:]]

    def ancestors(self, root_id: str, *, reader: EdgeReader | None = None) -> list[str]:
        """Tasks root_id transitively depends on, ordered by (distance, id)."""
        return [s.id for s in self.walk(root_id, Direction.DEPENDENCIES, reader=reader)[1:]]

    def reachable(self, from_id: str, to_id: str, *, reader: EdgeReader | None = None) -> bool:
        if from_id == to_id:
            return True
        return to_id in self.descendants(from_id, reader=reader)

    def hierarchy(
        self,
        root_id: str,
        direction: Direction = Direction.DEPENDENCIES,
        *,
        reader: EdgeReader | None = None,
    ) -> list[HierarchyNode]:
        r = reader or self._store
        steps = self.walk(root_id, direction, reader=r)
        statuses = r.task_statuses([s.id for s in steps])
        if root_id not in statuses:
            return []

        paths: dict[str, tuple[str, ...]] = {}
        out: list[HierarchyNode] = []
        for step in steps:
            if step.parent is None:
                path: tuple[str, ...] = (step.id,)
            else:
                path = paths[step.parent] + (step.id,)
            paths[step.id] = path
            status = statuses.get(step.id)
            if status is None:
                # Edge to a task deleted outside the store's cascade; skip it.
                continue
            out.append(HierarchyNode(id=step.id, level=step.level, path=path, status=status))
        return out

    def find_path(
        self,
        start_id: str,
        goal_id: str,
        direction: Direction,
        *,
        reader: EdgeReader | None = None,
    ) -> list[str] | None:
        """BFS path start -> ... -> goal along `direction`, or None if goal is unreachable."""
        parents: dict[str, str | None] = {}
        for step in self.walk(start_id, direction, reader=reader):
            parents[step.id] = step.parent
        if goal_id not in parents:
            return None

        path = [goal_id]
        node = goal_id
        while (parent := parents[node]) is not None:
            path.append(parent)
            node = parent
        path.reverse()
        return path
