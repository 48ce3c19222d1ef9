# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskgraph.cache.backends import MemoryCacheBackend
from taskgraph.cache.layer import CacheLayer
from taskgraph.cli.bootstrap import create_initial_state
from taskgraph.core.state import AppState
from taskgraph.graph.capability import Capability, CapabilityProbe, select_strategy
from taskgraph.graph.service import DependencyGraphService
from taskgraph.graph.traversal import TraversalEngine
from taskgraph.tasks.task_models import TaskStatus
from taskgraph.tasks.task_store import TaskStore

STRATEGY_CAPABILITIES = {
    "recursive": Capability.RECURSIVE_QUERY,
    "iterative": Capability.ITERATIVE_ONLY,
}


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_initial_state().

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskgraph-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "tasks.sqlite3",
        db_timeout=30.0,
        traversal="auto",
        cache_backend="memory",
        cache_ttl=3600.0,
        cache_prefix="task_dependencies:",
        redis_url="redis://localhost:6379/15",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState wired exactly like the CLI does, on a tmp SQLite file."""
    return create_initial_state(settings=settings)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture(params=sorted(STRATEGY_CAPABILITIES))
def strategy_name(request) -> str:
    return request.param


def build_service(store, strategy_name: str, *, backend=None) -> DependencyGraphService:
    """Service over `store` with a forced strategy and an in-process cache."""
    engine = TraversalEngine(store, select_strategy(STRATEGY_CAPABILITIES[strategy_name]))
    cache = CacheLayer(backend if backend is not None else MemoryCacheBackend())
    return DependencyGraphService(store, engine, cache, probe=CapabilityProbe(store))


@pytest.fixture()
def service(store: TaskStore, strategy_name: str) -> DependencyGraphService:
    return build_service(store, strategy_name)


def add_tasks(store: TaskStore, *ids: str, status: TaskStatus = TaskStatus.PENDING) -> None:
    for task_id in ids:
        store.add_task(task_id=task_id, title=f"Task {task_id}", status=status)
