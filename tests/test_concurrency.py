# tests/test_concurrency.py

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from taskgraph.core.errors import CycleError, GraphError
from taskgraph.graph.service import DependencyGraphService
from taskgraph.tasks.task_store import TaskStore

from .conftest import add_tasks


def _race(service: DependencyGraphService, pairs: list[tuple[str, str]]) -> list[object]:
    barrier = threading.Barrier(len(pairs))

    def attempt(pair: tuple[str, str]) -> object:
        barrier.wait()
        try:
            return service.add_dependency(*pair)
        except GraphError as e:
            return e

    with ThreadPoolExecutor(max_workers=len(pairs)) as pool:
        return list(pool.map(attempt, pairs))


def test_opposite_edges_never_both_commit(store: TaskStore, service: DependencyGraphService) -> None:
    for i in range(10):
        a, b = f"A{i}", f"B{i}"
        add_tasks(store, a, b)

        outcomes = _race(service, [(a, b), (b, a)])

        errors = [o for o in outcomes if isinstance(o, GraphError)]
        assert len(errors) == 1
        assert isinstance(errors[0], CycleError)
        assert len([e for e in store.list_edges() if set(e) == {a, b}]) == 1

    assert service.stats().potential_circular_dependencies == 0


def test_three_way_cycle_race(store: TaskStore, service: DependencyGraphService) -> None:
    add_tasks(store, "X", "Y", "Z")

    outcomes = _race(service, [("X", "Y"), ("Y", "Z"), ("Z", "X")])

    errors = [o for o in outcomes if isinstance(o, GraphError)]
    assert len(errors) == 1
    assert isinstance(errors[0], CycleError)
    assert store.count_edges() == 2


def test_parallel_readers_see_consistent_answers(store: TaskStore, service: DependencyGraphService) -> None:
    ids = [f"T{i:02d}" for i in range(12)]
    add_tasks(store, *ids)
    for prev, nxt in zip(ids, ids[1:]):
        service.add_dependency(nxt, prev)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: service.dependents(ids[0]), range(32)))

    assert all(r == ids[1:] for r in results)
