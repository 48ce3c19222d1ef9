# src/taskgraph/core/errors.py

"""
Errors surfaced by the dependency graph service.

Callers match on the class; every failure the service reports is a GraphError.
Raw store/cache exceptions are wrapped in StorageError.
"""

from __future__ import annotations

from collections.abc import Sequence


class GraphError(Exception):
    """Base class for every error the graph engine reports."""


class ValidationError(GraphError):
    """Self-dependency or malformed/missing id. Raised before any store access."""


class NotFoundError(GraphError):
    """A referenced task or edge does not exist."""


class DuplicateError(GraphError):
    """The dependency edge is already present."""


class CycleError(GraphError):
    """Adding the edge would close a cycle. `path` is the cycle, first id repeated at the end."""

    def __init__(self, task_id: str, dependency_id: str, path: Sequence[str]) -> None:
        self.task_id = task_id
        self.dependency_id = dependency_id
        self.path = tuple(path)
        super().__init__(
            f"Dependency {task_id} -> {dependency_id} would create a cycle: "
            + " -> ".join(self.path)
        )


class StorageError(GraphError):
    """Transaction/commit or cache backend failure. The store was rolled back."""
