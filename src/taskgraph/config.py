# src/taskgraph/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings stay injectable: library code takes them as arguments, only the CLI reads get_settings().
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKGRAPH"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    db_timeout: float

    # ---- Traversal ----
    traversal: str  # auto | recursive | iterative

    # ---- Cache ----
    cache_backend: str  # memory | redis
    cache_ttl: float
    cache_prefix: str
    redis_url: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskgraph").strip() or "taskgraph"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskgraph"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tasks.sqlite3")
        db_timeout = max(0.1, _env_float(_k("DB_TIMEOUT"), 30.0))

        traversal = _env_choice(_k("TRAVERSAL"), "auto", {"auto", "recursive", "iterative"})

        cache_backend = _env_choice(_k("CACHE_BACKEND"), "memory", {"memory", "redis"})
        # 1 hour, same as the task layer's default.
        cache_ttl = max(0.0, _env_float(_k("CACHE_TTL"), 3600.0))
        cache_prefix = _env(_k("CACHE_PREFIX"), "task_dependencies:")
        redis_url = _env(_k("REDIS_URL"), "redis://localhost:6379/0")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            db_timeout=db_timeout,
            traversal=traversal,
            cache_backend=cache_backend,
            cache_ttl=cache_ttl,
            cache_prefix=cache_prefix,
            redis_url=redis_url,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
