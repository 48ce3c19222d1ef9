# src/taskgraph/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/cache/strategy/service).
"""

from __future__ import annotations

import logging

from ..cache.backends import MemoryCacheBackend, RedisCacheBackend
from ..cache.layer import CacheLayer
from ..config import get_settings
from ..core.ports import CacheBackend
from ..core.state import AppState
from ..graph.capability import CapabilityProbe, strategy_from_setting
from ..graph.service import DependencyGraphService
from ..graph.traversal import TraversalEngine
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def _make_cache_backend(settings) -> tuple[CacheBackend, str]:
    if getattr(settings, "cache_backend", "memory") == "redis":
        try:
            return RedisCacheBackend.from_url(settings.redis_url), "redis"
        except Exception:
            # Single-process runs keep working without Redis.
            logger.exception("Redis cache unavailable at %s; using in-process cache.", settings.redis_url)
    return MemoryCacheBackend(), "memory"


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.db_path, timeout=float(getattr(settings, "db_timeout", 30.0)))

    backend, backend_name = _make_cache_backend(settings)
    cache = CacheLayer(
        backend,
        ttl=float(getattr(settings, "cache_ttl", 3600.0)),
        prefix=str(getattr(settings, "cache_prefix", "task_dependencies:")),
    )

    probe = CapabilityProbe(store)
    strategy = strategy_from_setting(str(getattr(settings, "traversal", "auto")), probe)
    engine = TraversalEngine(store, strategy)
    logger.info("Traversal strategy: %s (cache=%s)", strategy.name, backend_name)

    return AppState(
        settings=settings,
        store=store,
        cache=cache,
        graph=DependencyGraphService(store, engine, cache, probe=probe),
        cache_backend_name=backend_name,
    )
