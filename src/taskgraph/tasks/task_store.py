# src/taskgraph/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator, Sequence
from pathlib import Path

from ..core.errors import DuplicateError, NotFoundError, ValidationError
from .task_models import DependencyStats, Direction, Task, TaskStatus, WalkStep

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
_IN_CHUNK = 500

_WALK_COLUMNS = {
    # direction -> (column we come from, column we go to)
    Direction.DEPENDENCIES: ("task_id", "dependency_task_id"),
    Direction.DEPENDENTS: ("dependency_task_id", "task_id"),
}


def _chunks(ids: Sequence[str]) -> Iterator[list[str]]:
    for i in range(0, len(ids), _IN_CHUNK):
        yield list(ids[i : i + _IN_CHUNK])


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


def _label_breadth_first(root_id: str, adjacency: dict[str, list[str]]) -> list[WalkStep]:
    """(level, id) ordered BFS labeling; a node's parent is the smallest id one level up."""
    steps = [WalkStep(id=root_id, level=0, parent=None)]
    visited = {root_id}
    frontier = [root_id]
    level = 0
    while frontier:
        parent_of: dict[str, str] = {}
        for node in frontier:
            for nxt in adjacency.get(node, ()):
                if nxt in visited:
                    continue
                prev = parent_of.get(nxt)
                if prev is None or node < prev:
                    parent_of[nxt] = node
        level += 1
        frontier = sorted(parent_of)
        for node in frontier:
            visited.add(node)
            steps.append(WalkStep(id=node, level=level, parent=parent_of[node]))
    return steps


class _SqliteReader:
    """
    Read queries shared by TaskStore (fresh connection per call)
    and _SqliteTransaction (the transaction's own connection).
    """

    @contextlib.contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        raise NotImplementedError

    def task_exists(self, task_id: str) -> bool:
        with self._reading() as conn:
            row = conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return row is not None

    def task_status(self, task_id: str) -> TaskStatus | None:
        with self._reading() as conn:
            row = conn.execute("SELECT status FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return TaskStatus.from_db(row["status"]) if row else None

    def task_statuses(self, task_ids: Sequence[str]) -> dict[str, TaskStatus]:
        out: dict[str, TaskStatus] = {}
        with self._reading() as conn:
            for chunk in _chunks(list(task_ids)):
                cur = conn.execute(
                    f"SELECT id, status FROM tasks WHERE id IN ({_placeholders(len(chunk))})",
                    chunk,
                )
                for row in cur.fetchall():
                    out[str(row["id"])] = TaskStatus.from_db(row["status"])
        return out

    def edge_exists(self, task_id: str, dependency_id: str) -> bool:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT 1 FROM task_dependencies WHERE task_id = ? AND dependency_task_id = ?",
                (task_id, dependency_id),
            ).fetchone()
            return row is not None

    def _edges_where(self, column: str, ids: Sequence[str]) -> list[tuple[str, str]]:
        out: list[tuple[str, str]] = []
        if not ids:
            return out
        with self._reading() as conn:
            for chunk in _chunks(list(ids)):
                cur = conn.execute(
                    f"""
                    SELECT task_id, dependency_task_id
                    FROM task_dependencies
                    WHERE {column} IN ({_placeholders(len(chunk))})
                    ORDER BY task_id, dependency_task_id
                    """,
                    chunk,
                )
                out.extend((str(r["task_id"]), str(r["dependency_task_id"])) for r in cur.fetchall())
        return out

    def edges_from(self, task_ids: Sequence[str]) -> list[tuple[str, str]]:
        return self._edges_where("task_id", task_ids)

    def edges_to(self, dependency_ids: Sequence[str]) -> list[tuple[str, str]]:
        return self._edges_where("dependency_task_id", dependency_ids)

    def incomplete_dependency_count(self, task_id: str) -> int:
        with self._reading() as conn:
            (n,) = conn.execute(
                """
                SELECT COUNT(*)
                FROM task_dependencies td
                JOIN tasks t ON t.id = td.dependency_task_id
                WHERE td.task_id = ?
                  AND t.status != ?
                """,
                (task_id, TaskStatus.COMPLETED.value),
            ).fetchone()
            return int(n)

    def completion_counts(self, task_ids: Sequence[str]) -> dict[str, tuple[int, int]]:
        out: dict[str, tuple[int, int]] = {}
        with self._reading() as conn:
            for chunk in _chunks(list(task_ids)):
                cur = conn.execute(
                    f"""
                    SELECT td.task_id AS task_id,
                           COUNT(*) AS total,
                           SUM(CASE WHEN t.status = ? THEN 1 ELSE 0 END) AS completed
                    FROM task_dependencies td
                    JOIN tasks t ON t.id = td.dependency_task_id
                    WHERE td.task_id IN ({_placeholders(len(chunk))})
                    GROUP BY td.task_id
                    """,
                    (TaskStatus.COMPLETED.value, *chunk),
                )
                for row in cur.fetchall():
                    out[str(row["task_id"])] = (int(row["total"]), int(row["completed"] or 0))
        return out

    def recursive_walk(self, root_id: str, direction: Direction) -> list[WalkStep]:
        """
        Reachable subgraph in a single WITH RECURSIVE query, labeled breadth-first here.

        reach() is deduplicated per node id, so each reachable task is expanded once and
        the query touches O(V + E) rows on any edge set, cyclic ones included. Levels and
        parents follow the iterative walk: shortest distance, smallest-id parent.
        """
        src, dst = _WALK_COLUMNS[direction]
        sql = f"""
            WITH RECURSIVE reach(id) AS (
                SELECT ?
                UNION
                SELECT td.{dst}
                FROM task_dependencies td
                JOIN reach r ON td.{src} = r.id
            )
            SELECT td.{src} AS src, td.{dst} AS dst
            FROM task_dependencies td
            WHERE td.{src} IN (SELECT id FROM reach)
        """
        with self._reading() as conn:
            rows = conn.execute(sql, (root_id,)).fetchall()

        adjacency: dict[str, list[str]] = {}
        for r in rows:
            adjacency.setdefault(str(r["src"]), []).append(str(r["dst"]))
        return _label_breadth_first(root_id, adjacency)


class _SqliteTransaction(_SqliteReader):
    """Reads and writes bound to one connection inside BEGIN IMMEDIATE ... COMMIT."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @contextlib.contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        yield self._conn

    def insert_edge(self, task_id: str, dependency_id: str) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO task_dependencies(task_id, dependency_task_id, created_at)
                VALUES (?, ?, ?)
                """,
                (task_id, dependency_id, time.time()),
            )
        except sqlite3.IntegrityError as e:
            msg = str(e)
            if "UNIQUE" in msg:
                raise DuplicateError(f"Dependency {task_id} -> {dependency_id} already exists") from e
            if "CHECK" in msg:
                raise ValidationError(f"Task {task_id} cannot depend on itself") from e
            if "FOREIGN KEY" in msg:
                raise NotFoundError(f"Task {task_id} or {dependency_id} does not exist") from e
            raise

    def delete_edge(self, task_id: str, dependency_id: str) -> int:
        cur = self._conn.execute(
            "DELETE FROM task_dependencies WHERE task_id = ? AND dependency_task_id = ?",
            (task_id, dependency_id),
        )
        return cur.rowcount

    def delete_task(self, task_id: str) -> int:
        # Edges go with it (ON DELETE CASCADE).
        cur = self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        return cur.rowcount


class TaskStore(_SqliteReader):
    """
    SQLite task + dependency edge store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    The edge table enforces UNIQUE(task_id, dependency_task_id) and forbids
    self-references, independent of the checks done by the service.

    Thread-safety:
    - each method opens its own SQLite connection
    - transaction() holds one connection with the write lock taken up front
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self, *, autocommit: bool = False) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self._timeout,
            isolation_level=None if autocommit else "",
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("title", "TEXT NOT NULL DEFAULT ''")
            add_col("status", "TEXT NOT NULL DEFAULT 'pending'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    dependency_task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    created_at REAL NOT NULL DEFAULT 0,
                    CONSTRAINT unique_task_dependency UNIQUE (task_id, dependency_task_id),
                    CONSTRAINT no_self_dependency CHECK (task_id <> dependency_task_id)
                )
                """
            )

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_task_dependencies_task_id "
                "ON task_dependencies(task_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_task_dependencies_dependency_task_id "
                "ON task_dependencies(dependency_task_id)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status, id)")

            conn.commit()
        finally:
            conn.close()

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            status=TaskStatus.from_db(row["status"]),
            title=str(row["title"] or ""),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    # ---- transactions ----

    @contextlib.contextmanager
    def transaction(self) -> Iterator[_SqliteTransaction]:
        """
        BEGIN IMMEDIATE takes the database write lock before the first read, so the
        reads a mutation validates against cannot change until COMMIT.
        Any exception rolls back and is re-raised.
        """
        conn = self._get_conn(autocommit=True)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield _SqliteTransaction(conn)
            except BaseException:
                with contextlib.suppress(Exception):
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # ---- capability / diagnostics ----

    def probe_recursive_query(self) -> bool:
        """Run a minimal self-contained recursive query. Errors propagate to the caller."""
        conn = self._get_conn()
        try:
            (n,) = conn.execute(
                """
                WITH RECURSIVE probe(n) AS (
                    SELECT 1
                    UNION ALL
                    SELECT n + 1 FROM probe WHERE n < 3
                )
                SELECT COUNT(*) FROM probe
                """
            ).fetchone()
            return int(n) == 3
        finally:
            conn.close()

    def version(self) -> str:
        return sqlite3.sqlite_version

    def dependency_stats(self) -> DependencyStats:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT COUNT(task_id) AS tasks_with_dependencies,
                       COALESCE(SUM(dependency_count), 0) AS total_dependencies,
                       COALESCE(AVG(dependency_count), 0) AS avg_dependencies,
                       COALESCE(MAX(dependency_count), 0) AS max_dependencies
                FROM (
                    SELECT task_id, COUNT(*) AS dependency_count
                    FROM task_dependencies
                    GROUP BY task_id
                )
                """
            ).fetchone()
            (circular,) = conn.execute(
                """
                SELECT COUNT(*)
                FROM task_dependencies td1
                JOIN task_dependencies td2 ON td1.dependency_task_id = td2.task_id
                WHERE td2.dependency_task_id = td1.task_id
                """
            ).fetchone()
            return DependencyStats(
                tasks_with_dependencies=int(row["tasks_with_dependencies"]),
                total_dependencies=int(row["total_dependencies"]),
                avg_dependencies_per_task=round(float(row["avg_dependencies"]), 2),
                max_dependencies_per_task=int(row["max_dependencies"]),
                potential_circular_dependencies=int(circular),
            )
        finally:
            conn.close()

    # ---- task API (owned by the task layer; the graph engine only reads) ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def count_edges(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM task_dependencies").fetchone()
            return int(n)
        finally:
            conn.close()

    def list_edges(self) -> list[tuple[str, str]]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT task_id, dependency_task_id FROM task_dependencies "
                "ORDER BY task_id, dependency_task_id"
            )
            return [(str(r["task_id"]), str(r["dependency_task_id"])) for r in cur.fetchall()]
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        task_id: str | None = None,
        status: TaskStatus = TaskStatus.PENDING,
    ) -> str:
        if task_id is not None and not str(task_id).strip():
            raise ValueError("task_id must not be blank")

        new_id = str(task_id).strip() if task_id is not None else uuid.uuid4().hex
        now = time.time()

        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO tasks(id, title, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (new_id, (title or "").strip(), status.value, now, now),
                )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise DuplicateError(f"Task {new_id} already exists") from e
                raise
            conn.commit()
            logger.debug("Task added id=%s status=%s", new_id, status.value)
            return new_id
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(self, limit: int = 100) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT * FROM tasks ORDER BY created_at ASC, id ASC LIMIT ?",
                (int(limit),),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def update_task_status(self, task_id: str, new_status: TaskStatus) -> bool:
        """Returns True if the row existed."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
                (new_status.value, time.time(), task_id),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()
