# src/taskgraph/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..cache.layer import CacheLayer
from ..graph.service import DependencyGraphService
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    store: TaskStore
    cache: CacheLayer
    graph: DependencyGraphService

    cache_backend_name: str = "memory"
