# src/taskgraph/graph/completion.py

from __future__ import annotations

from collections.abc import Sequence

from ..core.ports import EdgeReader


class CompletionGate:
    """
    Only direct dependencies are checked.

    A dependency can only have reached "completed" once its own direct dependencies
    were completed, so one hop per task is enough for the whole chain.
    """

    def __init__(self, store: EdgeReader) -> None:
        self._store = store

    def is_completion_allowed(self, task_id: str) -> bool:
        return self._store.incomplete_dependency_count(task_id) == 0

    def batch_completion(self, task_ids: Sequence[str]) -> dict[str, bool]:
        """Tasks without dependencies are allowed."""
        if not task_ids:
            return {}
        counts = self._store.completion_counts(list(task_ids))
        out: dict[str, bool] = {}
        for task_id in task_ids:
            total, completed = counts.get(task_id, (0, 0))
            out[task_id] = total == completed
        return out
