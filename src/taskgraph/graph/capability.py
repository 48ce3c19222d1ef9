# src/taskgraph/graph/capability.py

from __future__ import annotations

import logging
import threading
from enum import StrEnum

from ..core.ports import GraphStore, TraversalStrategy
from .strategies import IterativeStrategy, RecursiveQueryStrategy

logger = logging.getLogger(__name__)


class Capability(StrEnum):
    RECURSIVE_QUERY = "recursive_query_supported"
    ITERATIVE_ONLY = "iterative_only"


class CapabilityProbe:
    """
    Detects once whether the store can run recursive traversal queries.

    Any failure while probing (unsupported syntax, permissions, a store without
    the probe method) resolves to ITERATIVE_ONLY.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._capability: Capability | None = None

    def detect(self) -> Capability:
        with self._lock:
            if self._capability is None:
                self._capability = self._probe()
            return self._capability

    def _probe(self) -> Capability:
        try:
            ok = bool(self._store.probe_recursive_query())
        except Exception as e:
            logger.warning("Recursive query probe failed (%s); using iterative traversal.", e)
            return Capability.ITERATIVE_ONLY

        if not ok:
            logger.warning("Recursive query probe returned an unexpected result; using iterative traversal.")
            return Capability.ITERATIVE_ONLY

        logger.info("Store supports recursive queries.")
        return Capability.RECURSIVE_QUERY


def select_strategy(capability: Capability) -> TraversalStrategy:
    if capability == Capability.RECURSIVE_QUERY:
        return RecursiveQueryStrategy()
    return IterativeStrategy()


def strategy_from_setting(mode: str, probe: CapabilityProbe) -> TraversalStrategy:
    """
    Map the traversal setting (auto | recursive | iterative) to a strategy.
    "auto" and unknown values probe the store.
    """
    m = (mode or "auto").strip().lower()
    if m == "recursive":
        return select_strategy(Capability.RECURSIVE_QUERY)
    if m == "iterative":
        return select_strategy(Capability.ITERATIVE_ONLY)
    if m != "auto":
        logger.warning("Unknown traversal mode %r; probing the store.", mode)
    return select_strategy(probe.detect())
