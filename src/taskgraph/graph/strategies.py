# src/taskgraph/graph/strategies.py

"""
Traversal strategies.

Both produce the same breadth-first labeling for the same edge set:
- level  = shortest distance from the root,
- parent = smallest id one level up with an edge to the node,
- order  = (level, id).
"""

from __future__ import annotations

import logging

from ..core.ports import EdgeReader
from ..tasks.task_models import Direction, WalkStep

logger = logging.getLogger(__name__)


class RecursiveQueryStrategy:
    """Delegates the whole walk to the store (one recursive reach query plus BFS labeling)."""

    name = "recursive"

    def walk(self, reader: EdgeReader, root_id: str, direction: Direction) -> list[WalkStep]:
        steps = reader.recursive_walk(root_id, direction)
        if not steps or steps[0].id != root_id:
            # A store may omit the root; the labeling always starts with it.
            steps = [WalkStep(id=root_id, level=0, parent=None)] + [s for s in steps if s.id != root_id]
        return steps


class IterativeStrategy:
    """
    Level-by-level BFS with application-side queries.

    One neighbor query per level for the whole frontier; the visited set guarantees
    termination on any finite edge set.
    """

    name = "iterative"

    def walk(self, reader: EdgeReader, root_id: str, direction: Direction) -> list[WalkStep]:
        steps = [WalkStep(id=root_id, level=0, parent=None)]
        visited = {root_id}
        frontier = [root_id]
        level = 0

        while frontier:
            if direction == Direction.DEPENDENCIES:
                pairs = reader.edges_from(frontier)
            else:
                pairs = [(d, t) for t, d in reader.edges_to(frontier)]

            parent_of: dict[str, str] = {}
            for src, dst in pairs:
                if dst in visited:
                    continue
                prev = parent_of.get(dst)
                if prev is None or src < prev:
                    parent_of[dst] = src

            level += 1
            frontier = sorted(parent_of)
            for node in frontier:
                visited.add(node)
                steps.append(WalkStep(id=node, level=level, parent=parent_of[node]))

        logger.debug(
            "Iterative walk root=%s direction=%s reached=%d levels=%d",
            root_id,
            direction.value,
            len(steps) - 1,
            level - 1,
        )
        return steps
