# src/taskgraph/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "taskgraph.log"

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-query chatter: cache hits/misses and BFS level counts.
_CHATTY_PREFIXES = ("taskgraph.cache.", "taskgraph.graph.strategies")

# Third-party loggers capped at WARNING everywhere (file included).
_NOISY_LIBRARIES = ("redis",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable:
    - taskgraph mutations, probe results and errors are shown
    - per-query cache/traversal debug lines only at WARNING+
    - third-party libraries and 'py.warnings' only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskgraph."):
            return record.levelno >= logging.ERROR
        if name.startswith(_CHATTY_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def resolve_level(name: str | int | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / 10 -> logging level; unknown names fall back to default."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskgraph",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backups: int = 3,
) -> Path:
    """
    Install a filtered stderr handler and a rotating DEBUG file handler on the root logger.

    Replaces existing root handlers, so calling it twice does not duplicate output.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    # The REPL can run for days; keep the file bounded.
    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    for lib in _NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return log_file
