# src/taskboard/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType

from .task_models import Task, TaskState

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "description",
    "assignee",
    "created_at",
    "deadline",
    "state",
    "channel_id",
    "message_id",
)


class TaskStore:
    """
    SQLite task store with an in-process cache.

    - All rows are loaded once at construction; reads never touch the DB.
    - save() writes one row immediately.
    - remove() drops the task from the cache; the row is deleted by the next
      save_all(), which also rewrites every cached row in a single transaction.

    The schema is migration-safe in the same way as every other local DB here:
    create table if missing, add columns that are missing.

    Callers get copies; mutating a returned Task does not change the store.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._tasks: dict[str, Task] = {}
        self._pending_removals: set[str] = set()
        self._ensure_schema()
        self.reload()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, len(self._tasks))

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    description TEXT NOT NULL DEFAULT '',
                    assignee TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL DEFAULT 0,
                    deadline REAL NOT NULL DEFAULT 0,
                    state TEXT NOT NULL DEFAULT 'not_started',
                    channel_id TEXT NOT NULL DEFAULT '',
                    message_id TEXT
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("assignee", "TEXT NOT NULL DEFAULT ''")
            add_col("deadline", "REAL NOT NULL DEFAULT 0")
            add_col("state", "TEXT NOT NULL DEFAULT 'not_started'")
            add_col("channel_id", "TEXT NOT NULL DEFAULT ''")
            add_col("message_id", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_message ON tasks(message_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            description=str(row["description"] or ""),
            assignee=str(row["assignee"] or ""),
            created_at=float(row["created_at"] or 0.0),
            deadline=float(row["deadline"] or 0.0),
            state=TaskState.from_db(row["state"]),
            channel_id=str(row["channel_id"] or ""),
            message_id=row["message_id"],
        )

    @staticmethod
    def _task_to_params(task: Task) -> tuple:
        return (
            task.id,
            task.description,
            task.assignee,
            float(task.created_at),
            float(task.deadline),
            task.state.value,
            task.channel_id,
            task.message_id,
        )

    @staticmethod
    def _upsert(conn: sqlite3.Connection, task: Task) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "id")
        conn.execute(
            f"INSERT INTO tasks({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            TaskStore._task_to_params(task),
        )

    # ---- public API ----

    def reload(self) -> None:
        """Drop the cache and load every row from disk."""
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM tasks").fetchall()
        finally:
            conn.close()
        self._tasks = {}
        for r in rows:
            task = self._row_to_task(r)
            self._tasks[task.id] = task
        self._pending_removals.clear()

    def count_tasks(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        return replace(task) if task is not None else None

    def all(self) -> Mapping[str, Task]:
        """Read-only snapshot (task_id -> copy of Task)."""
        return MappingProxyType({k: replace(v) for k, v in self._tasks.items()})

    def find_by_message(self, message_id: str) -> Task | None:
        if not message_id:
            return None
        for task in self._tasks.values():
            if task.message_id == message_id:
                return replace(task)
        return None

    def save(self, task: Task) -> None:
        if not task.id:
            raise ValueError("task id is required")

        conn = self._get_conn()
        try:
            self._upsert(conn, task)
            conn.commit()
        finally:
            conn.close()

        self._tasks[task.id] = replace(task)
        self._pending_removals.discard(task.id)
        logger.debug("Task saved id=%s state=%s message=%s", task.id, task.state.value, task.message_id)

    def remove(self, task_id: str) -> None:
        if self._tasks.pop(task_id, None) is None:
            return
        self._pending_removals.add(task_id)
        logger.debug("Task removed from cache id=%s (pending save_all)", task_id)

    def save_all(self) -> None:
        """Persist the whole cache (deletes + upserts) in one transaction."""
        removed = sorted(self._pending_removals)
        conn = self._get_conn()
        try:
            with conn:
                if removed:
                    conn.executemany("DELETE FROM tasks WHERE id = ?", [(i,) for i in removed])
                for task in self._tasks.values():
                    self._upsert(conn, task)
        finally:
            conn.close()

        self._pending_removals.clear()
        logger.info("TaskStore saved total=%s removed=%s", len(self._tasks), len(removed))
