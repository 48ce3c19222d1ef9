# tests/test_traversal.py

from __future__ import annotations

import pytest

from taskgraph.graph.capability import (
    Capability,
    CapabilityProbe,
    select_strategy,
    strategy_from_setting,
)
from taskgraph.graph.strategies import IterativeStrategy, RecursiveQueryStrategy
from taskgraph.graph.traversal import TraversalEngine
from taskgraph.tasks.task_models import Direction, TaskStatus
from taskgraph.tasks.task_store import TaskStore

from .conftest import STRATEGY_CAPABILITIES, add_tasks
from .fakes import NoRecursionStore


def _diamond(store: TaskStore) -> None:
    """A depends on B and C; B and C depend on D; D depends on E."""
    add_tasks(store, "A", "B", "C", "D", "E")
    with store.transaction() as tx:
        tx.insert_edge("A", "B")
        tx.insert_edge("A", "C")
        tx.insert_edge("B", "D")
        tx.insert_edge("C", "D")
        tx.insert_edge("D", "E")


@pytest.fixture()
def engine(store: TaskStore, strategy_name: str) -> TraversalEngine:
    return TraversalEngine(store, select_strategy(STRATEGY_CAPABILITIES[strategy_name]))


def test_descendants_and_ancestors_chain(store: TaskStore, engine: TraversalEngine) -> None:
    # B depends on A, C depends on B.
    add_tasks(store, "A", "B", "C")
    with store.transaction() as tx:
        tx.insert_edge("B", "A")
        tx.insert_edge("C", "B")

    assert engine.descendants("A") == ["B", "C"]
    assert engine.ancestors("C") == ["B", "A"]
    assert engine.descendants("C") == []
    assert engine.ancestors("A") == []


def test_reachable(store: TaskStore, engine: TraversalEngine) -> None:
    _diamond(store)
    assert engine.reachable("E", "A") is True
    assert engine.reachable("A", "E") is False
    assert engine.reachable("B", "C") is False
    assert engine.reachable("C", "C") is True


def test_hierarchy_levels_and_paths(store: TaskStore, engine: TraversalEngine) -> None:
    _diamond(store)
    store.update_task_status("E", TaskStatus.COMPLETED)

    nodes = engine.hierarchy("A")
    assert [(n.id, n.level, n.path) for n in nodes] == [
        ("A", 0, ("A",)),
        ("B", 1, ("A", "B")),
        ("C", 1, ("A", "C")),
        ("D", 2, ("A", "B", "D")),
        ("E", 3, ("A", "B", "D", "E")),
    ]
    assert nodes[-1].status == TaskStatus.COMPLETED
    assert engine.hierarchy("missing") == []


def test_hierarchy_of_dependents(store: TaskStore, engine: TraversalEngine) -> None:
    _diamond(store)
    nodes = engine.hierarchy("E", Direction.DEPENDENTS)
    assert [(n.id, n.level) for n in nodes] == [("E", 0), ("D", 1), ("B", 2), ("C", 2), ("A", 3)]
    assert nodes[-1].path == ("E", "D", "B", "A")


def test_find_path(store: TaskStore, engine: TraversalEngine) -> None:
    _diamond(store)
    assert engine.find_path("A", "E", Direction.DEPENDENCIES) == ["A", "B", "D", "E"]
    assert engine.find_path("E", "A", Direction.DEPENDENCIES) is None
    assert engine.find_path("A", "A", Direction.DEPENDENCIES) == ["A"]


def test_strategies_agree_on_every_root(store: TaskStore) -> None:
    _diamond(store)
    add_tasks(store, "F")
    with store.transaction() as tx:
        tx.insert_edge("F", "C")

    rec, it = RecursiveQueryStrategy(), IterativeStrategy()
    for root in ("A", "B", "C", "D", "E", "F"):
        for direction in Direction:
            assert rec.walk(store, root, direction) == it.walk(store, root, direction)


def test_probe_detects_recursive_support(store: TaskStore) -> None:
    probe = CapabilityProbe(store)
    assert probe.detect() == Capability.RECURSIVE_QUERY
    assert isinstance(strategy_from_setting("auto", probe), RecursiveQueryStrategy)


def test_probe_failure_falls_back_to_iterative(store: TaskStore) -> None:
    _diamond(store)
    broken = NoRecursionStore(store)
    probe = CapabilityProbe(broken)

    assert probe.detect() == Capability.ITERATIVE_ONLY
    strategy = strategy_from_setting("auto", probe)
    assert isinstance(strategy, IterativeStrategy)

    # Queries still answer correctly without recursive support.
    engine = TraversalEngine(broken, strategy)
    assert engine.descendants("E") == ["D", "B", "C", "A"]


def test_probe_runs_once() -> None:
    class _Store:
        calls = 0

        def probe_recursive_query(self) -> bool:
            self.calls += 1
            return True

    s = _Store()
    probe = CapabilityProbe(s)  # type: ignore[arg-type]
    assert probe.detect() == Capability.RECURSIVE_QUERY
    assert probe.detect() == Capability.RECURSIVE_QUERY
    assert s.calls == 1


def test_probe_unexpected_result_is_iterative() -> None:
    class _Store:
        def probe_recursive_query(self) -> bool:
            return False

    assert CapabilityProbe(_Store()).detect() == Capability.ITERATIVE_ONLY  # type: ignore[arg-type]


def test_strategy_setting_overrides_probe(store: TaskStore) -> None:
    probe = CapabilityProbe(NoRecursionStore(store))
    assert isinstance(strategy_from_setting("recursive", probe), RecursiveQueryStrategy)
    assert isinstance(strategy_from_setting("ITERATIVE", probe), IterativeStrategy)
    assert isinstance(strategy_from_setting("bogus", probe), IterativeStrategy)
