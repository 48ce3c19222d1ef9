# src/taskgraph/graph/guard.py

from __future__ import annotations

import logging

from ..core.errors import CycleError
from ..core.ports import EdgeReader
from ..tasks.task_models import Direction
from .traversal import TraversalEngine

logger = logging.getLogger(__name__)


class CycleGuard:
    """
    Edge (task, dependency) is safe iff task != dependency and the dependency does
    not already depend, directly or transitively, on the task.

    Must be given the reader of the transaction that will insert the edge.
    """

    def __init__(self, engine: TraversalEngine) -> None:
        self._engine = engine

    def would_create_cycle(
        self,
        task_id: str,
        dependency_id: str,
        *,
        reader: EdgeReader | None = None,
    ) -> bool:
        return self._engine.reachable(task_id, dependency_id, reader=reader)

    def check(self, task_id: str, dependency_id: str, *, reader: EdgeReader | None = None) -> None:
        """Raise CycleError naming the cycle the edge would close."""
        if task_id == dependency_id:
            raise CycleError(task_id, dependency_id, [task_id, task_id])

        # dependency -> ... -> task along "depends on" edges
        chain = self._engine.find_path(dependency_id, task_id, Direction.DEPENDENCIES, reader=reader)
        if chain is None:
            return

        cycle = [task_id, *chain]
        logger.info("Rejected dependency %s -> %s: cycle %s", task_id, dependency_id, " -> ".join(cycle))
        raise CycleError(task_id, dependency_id, cycle)
