# src/taskgraph/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - The graph engine only reads status; transitions belong to the task layer.
    - "archived" and "cancelled" are terminal but do NOT satisfy a dependency.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except Exception:
            return cls.PENDING


class Direction(StrEnum):
    """
    Which way a traversal follows dependency edges.

    DEPENDENTS:   dependency -> tasks that depend on it
    DEPENDENCIES: task -> tasks it depends on
    """

    DEPENDENTS = "dependents"
    DEPENDENCIES = "dependencies"


@dataclass(slots=True)
class Task:
    id: str
    status: TaskStatus
    title: str
    created_at: float
    updated_at: float


@dataclass(slots=True, frozen=True)
class DependencyEdge:
    """task_id cannot be completed until dependency_task_id is completed."""

    task_id: str
    dependency_task_id: str


@dataclass(slots=True, frozen=True)
class WalkStep:
    """One node reached by a traversal: its BFS level and the parent it was discovered from."""

    id: str
    level: int
    parent: str | None


@dataclass(slots=True, frozen=True)
class HierarchyNode:
    id: str
    level: int
    path: tuple[str, ...]
    status: TaskStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "path": list(self.path),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HierarchyNode:
        return cls(
            id=str(raw["id"]),
            level=int(raw["level"]),
            path=tuple(str(p) for p in raw.get("path") or ()),
            status=TaskStatus.from_db(raw.get("status")),
        )


@dataclass(slots=True, frozen=True)
class DependencyStats:
    tasks_with_dependencies: int
    total_dependencies: int
    avg_dependencies_per_task: float
    max_dependencies_per_task: int
    potential_circular_dependencies: int


@dataclass(slots=True, frozen=True)
class StoreInfo:
    """`capability` is what detection found; `strategy` is the traversal actually in use."""

    type: str
    version: str
    supports_recursive: bool
    capability: str
    strategy: str
