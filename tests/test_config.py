# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskgraph.cli.bootstrap import create_initial_state
from taskgraph.config import Settings
from taskgraph.graph.strategies import IterativeStrategy
from taskgraph.logging_setup import _ConsoleNoiseFilter, resolve_level


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DATA_DIR", "DB_PATH", "TRAVERSAL", "CACHE_BACKEND", "CACHE_TTL", "CACHE_PREFIX"):
        monkeypatch.delenv(f"TASKGRAPH_{name}", raising=False)

    s = Settings.from_env()
    assert s.data_dir == Path(".local/taskgraph")
    assert s.db_path == Path(".local/taskgraph") / "tasks.sqlite3"
    assert s.traversal == "auto"
    assert s.cache_backend == "memory"
    assert s.cache_ttl == 3600.0
    assert s.cache_prefix == "task_dependencies:"


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKGRAPH_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TASKGRAPH_DB_PATH", raising=False)
    monkeypatch.setenv("TASKGRAPH_TRAVERSAL", "Iterative")
    monkeypatch.setenv("TASKGRAPH_CACHE_BACKEND", "memcached")
    monkeypatch.setenv("TASKGRAPH_CACHE_TTL", "not-a-number")
    monkeypatch.setenv("TASKGRAPH_DB_TIMEOUT", "-5")

    s = Settings.from_env()
    assert s.db_path == tmp_path / "tasks.sqlite3"
    assert s.traversal == "iterative"
    assert s.cache_backend == "memory"
    assert s.cache_ttl == 3600.0
    assert s.db_timeout == 0.1


def test_bootstrap_honours_forced_strategy(settings) -> None:
    settings.traversal = "iterative"
    state = create_initial_state(settings=settings)
    assert isinstance(state.graph.engine.strategy, IterativeStrategy)
    assert state.cache_backend_name == "memory"
    assert settings.db_path.exists()


def test_bootstrap_falls_back_when_redis_unreachable(settings) -> None:
    settings.cache_backend = "redis"
    settings.redis_url = "redis://127.0.0.1:1/0"
    state = create_initial_state(settings=settings)
    assert state.cache_backend_name == "memory"


def test_console_noise_filter() -> None:
    f = _ConsoleNoiseFilter()

    def rec(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert f.filter(rec("taskgraph.graph.service", logging.INFO)) is True
    assert f.filter(rec("taskgraph.cache.layer", logging.DEBUG)) is False
    assert f.filter(rec("taskgraph.cache.backends", logging.WARNING)) is True
    assert f.filter(rec("redis.connection", logging.WARNING)) is False


def test_resolve_level() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" WARNING ") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("chatty") == logging.INFO
    assert resolve_level(None, default=logging.WARNING) == logging.WARNING
