# src/taskgraph/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import GraphError
from ..core.state import AppState
from ..tasks.task_models import TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /dep, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Graph errors are rendered as "[Kind] message".
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except GraphError as e:
            logger.debug("/%s rejected: %s", name, e)
            return f"[{type(e).__name__}] {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ids(ids: list[str]) -> str:
    return ", ".join(ids) if ids else "(none)"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_task(state: AppState, args: list[str]) -> str:
    """
    /task add <id> [title...]
    /task list
    /task set <id> <status>
    /task done <id>        -> refused while a direct dependency is not completed
    /task rm <id>
    """
    usage = (
        "Usage:\n"
        "  /task add <id> [title...]\n"
        "  /task list\n"
        "  /task set <id> <status>\n"
        "  /task done <id>\n"
        "  /task rm <id>"
    )
    if not args:
        return usage

    sub = args[0].lower()

    if sub == "add" and len(args) >= 2:
        task_id = state.store.add_task(task_id=args[1], title=" ".join(args[2:]) or args[1])
        return f"Task {task_id} created."

    if sub == "list":
        tasks = state.store.list_tasks(limit=100)
        if not tasks:
            return "No tasks."
        lines = ["Tasks:"]
        for t in tasks:
            lines.append(f"  {t.id} [{t.status.value}] {t.title}")
        return "\n".join(lines)

    if sub in ("set", "done") and len(args) >= 2:
        task_id = args[1]
        if sub == "done":
            status = TaskStatus.COMPLETED
        elif len(args) >= 3 and args[2].lower() in {s.value for s in TaskStatus}:
            status = TaskStatus(args[2].lower())
        else:
            return "Status must be one of: " + ", ".join(s.value for s in TaskStatus)

        if status == TaskStatus.COMPLETED and not state.graph.is_completion_allowed(task_id):
            pending = [
                d
                for d in state.graph.direct_dependencies(task_id)
                if state.store.task_status(d) != TaskStatus.COMPLETED
            ]
            return f"Cannot complete {task_id}: waiting on {_fmt_ids(pending)}."

        if not state.store.update_task_status(task_id, status):
            return f"Task {task_id} not found."
        n = state.graph.on_status_changed(task_id)
        return f"Task {task_id} -> {status.value} (refreshed {n} cached tasks)."

    if sub == "rm" and len(args) >= 2:
        n = state.graph.delete_task(args[1])
        return f"Task {args[1]} deleted (refreshed {n} cached tasks)."

    return usage


def cmd_dep(state: AppState, args: list[str]) -> str:
    """
    /dep add <task> <dependency>
    /dep rm  <task> <dependency>
    """
    if len(args) != 3 or args[0].lower() not in ("add", "rm"):
        return "Usage: /dep add <task> <dependency> | /dep rm <task> <dependency>"

    sub, task_id, dep_id = args[0].lower(), args[1], args[2]
    if sub == "add":
        state.graph.add_dependency(task_id, dep_id)
        return f"{task_id} now depends on {dep_id}."

    state.graph.remove_dependency(task_id, dep_id)
    return f"{task_id} no longer depends on {dep_id}."


def cmd_deps(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /deps <task>"
    direct = state.graph.direct_dependencies(args[0])
    transitive = state.graph.dependencies(args[0])
    return (
        f"Dependencies of {args[0]}:\n"
        f"  direct:     {_fmt_ids(direct)}\n"
        f"  transitive: {_fmt_ids(transitive)}"
    )


def cmd_dependents(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /dependents <task>"
    direct = state.graph.direct_dependents(args[0])
    transitive = state.graph.dependents(args[0])
    return (
        f"Dependents of {args[0]}:\n"
        f"  direct:     {_fmt_ids(direct)}\n"
        f"  transitive: {_fmt_ids(transitive)}"
    )


def cmd_tree(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /tree <task>"
    nodes = state.graph.hierarchy(args[0])
    lines = [f"Dependency hierarchy of {args[0]}:"]
    for n in nodes:
        lines.append(f"  {'  ' * n.level}{n.id} [{n.status.value}]  ({' -> '.join(n.path)})")
    return "\n".join(lines)


def cmd_can(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /can <task> [task...]"
    if len(args) == 1:
        ok = state.graph.is_completion_allowed(args[0])
        return f"{args[0]}: {'can be completed' if ok else 'blocked by dependencies'}"
    result = state.graph.batch_completion(args)
    return "\n".join(f"{t}: {'ok' if ok else 'blocked'}" for t, ok in result.items())


def cmd_status(state: AppState, args: list[str]) -> str:
    info = state.graph.store_info()
    return (
        "Status:\n"
        f"  Store: {info.type} {info.version}\n"
        f"  Recursive queries: {'yes' if info.supports_recursive else 'no'}\n"
        f"  Capability: {info.capability}\n"
        f"  Traversal: {info.strategy}\n"
        f"  Cache: {state.cache_backend_name} (ttl={state.cache.ttl:.0f}s)\n"
        f"  Tasks: {state.store.count_tasks()}"
    )


def cmd_stats(state: AppState, args: list[str]) -> str:
    s = state.graph.stats()
    return (
        "Dependency statistics:\n"
        f"  Tasks with dependencies:         {s.tasks_with_dependencies}\n"
        f"  Total dependencies:              {s.total_dependencies}\n"
        f"  Average dependencies per task:   {s.avg_dependencies_per_task}\n"
        f"  Maximum dependencies per task:   {s.max_dependencies_per_task}\n"
        f"  Potential circular dependencies: {s.potential_circular_dependencies}"
    )


def cmd_cache(state: AppState, args: list[str]) -> str:
    if args[:1] != ["flush"]:
        return "Usage: /cache flush"
    state.graph.flush_cache()
    return "Dependency cache flushed."


def cmd_bench(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /bench <task>"
    if emit:
        with contextlib.suppress(Exception):
            emit(f"[BENCH] Walking dependents of {args[0]} with each strategy...")
    results = state.graph.benchmark(args[0])
    lines = [f"Benchmark for {args[0]} (best of 3):"]
    for name, ms in results.items():
        lines.append(f"  {name:<10} {ms:.3f} ms")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("task", cmd_task, help_text="Tasks: /task add | list | set | done | rm.")
registry.register("dep", cmd_dep, help_text="Edges: /dep add <task> <dep> | /dep rm <task> <dep>.")
registry.register("deps", cmd_deps, help_text="What a task depends on (direct + transitive).")
registry.register("dependents", cmd_dependents, help_text="What depends on a task (direct + transitive).")
registry.register("tree", cmd_tree, help_text="Breadth-first dependency hierarchy of a task.")
registry.register("can", cmd_can, help_text="Can the task(s) be completed now?")
registry.register("status", cmd_status, help_text="Store, traversal strategy and cache info.")
registry.register("stats", cmd_stats, help_text="Dependency statistics.")
registry.register("cache", cmd_cache, help_text="Administrative cache flush: /cache flush.")
registry.register("bench", cmd_bench, help_text="Compare traversal strategies on a task.")
