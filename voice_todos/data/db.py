"""
Voice Todos — Task Store.

Tasks persist in SQLite across restarts. The store is the consistency core:
every mutation runs inside a single transaction, then reconciles the task's
reminder, then refreshes the in-memory snapshot from disk, so what callers
see is always what the reminder decision was based on.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, tzinfo
from pathlib import Path
from typing import TYPE_CHECKING

from voice_todos.core.dates import (
    deserialize_due_date,
    normalize_due_date,
    parse_due_date,
    serialize_due_date,
)
from voice_todos.core.errors import NotFound, PersistenceError
from voice_todos.data.models import Task, TaskCategory

if TYPE_CHECKING:
    from voice_todos.core.reminders import ReminderScheduler
    from voice_todos.core.transcription import CandidateTask

logger = logging.getLogger(__name__)

# Marks a keyword argument of update_task as "leave unchanged".
_UNSET = object()


class TaskStore:
    """SQLite-backed task storage with reminder side effects."""

    def __init__(
        self,
        reminders: ReminderScheduler,
        db_path: str | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        if db_path is None:
            from voice_todos.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._reminders = reminders
        self._tz = tz
        self._tasks: dict[int, Task] = {}
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        self._refresh()

    # ---- low-level helpers ----

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and raise PersistenceError on failure."""
        conn = self._connect()
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Task store transaction rolled back: %s", exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create the tasks table if it doesn't exist."""
        with self._transaction() as conn:
            # AUTOINCREMENT: ids are never reused, even after deletes.
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    title       TEXT    NOT NULL,
                    description TEXT,
                    is_done     INTEGER NOT NULL DEFAULT 0,
                    category    TEXT    NOT NULL DEFAULT 'personal',
                    due_date    TEXT
                )
            """)
        logger.debug("Tasks table initialized at %s", self._db_path)

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            is_done=bool(row["is_done"]),
            category=TaskCategory(row["category"]),
            due_date=deserialize_due_date(row["due_date"], self._tz),
        )

    def _refresh(self) -> None:
        """Rebuild the snapshot from the durable store."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM tasks").fetchall()
        self._tasks = {row["id"]: self._row_to_task(row) for row in rows}

    def _fetch(self, conn: sqlite3.Connection, task_id: int) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFound(task_id)
        return row

    def _reconcile(self, task: Task, previous_due: datetime | None) -> None:
        self._reminders.reconcile(
            task.id, previous_due, task.due_date, title=task.title, is_done=task.is_done,
        )

    @staticmethod
    def _clean_title(title: str) -> str:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValueError("title must not be blank")
        return cleaned

    # ---- public API ----

    def list_tasks(self) -> list[Task]:
        """Snapshot of all tasks. Ordering is not guaranteed."""
        return list(self._tasks.values())

    def get_task(self, task_id: int) -> Task | None:
        return self._tasks.get(task_id)

    def add_task(self, title: str, category: TaskCategory | None = None) -> Task:
        """Insert a task without a due date."""
        title = self._clean_title(title)
        category = category or TaskCategory.PERSONAL

        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO tasks (title, is_done, category) VALUES (?, 0, ?)",
                (title, category.value),
            )
            task_id = cursor.lastrowid

        self._reminders.reconcile(task_id, None, None, title=title)
        self._refresh()
        logger.info("Task added: #%d '%s' [%s]", task_id, title, category.value)
        return self._tasks[task_id]

    def add_batch(self, candidates: Iterable[CandidateTask]) -> list[Task]:
        """Insert every candidate in one all-or-nothing transaction.

        A candidate whose due date cannot be parsed is still inserted, just
        without a due date.
        """
        rows: list[tuple[str, str | None, str, str | None]] = []
        for candidate in candidates:
            due = parse_due_date(candidate.due_date, self._tz)
            if due is None and candidate.due_date.strip():
                logger.warning("Dropping due date %r for '%s'", candidate.due_date, candidate.title)
            rows.append((
                self._clean_title(candidate.title),
                candidate.description or None,
                TaskCategory.normalize(candidate.category).value,
                serialize_due_date(due),
            ))

        inserted: list[Task] = []
        with self._transaction() as conn:
            for row in rows:
                cursor = conn.execute(
                    "INSERT INTO tasks (title, description, is_done, category, due_date) "
                    "VALUES (?, ?, 0, ?, ?)",
                    row,
                )
                inserted.append(self._row_to_task(self._fetch(conn, cursor.lastrowid)))

        for task in inserted:
            self._reconcile(task, None)
        self._refresh()
        task_ids = [task.id for task in inserted]
        logger.info("Batch added: %d task(s) %s", len(task_ids), task_ids)
        return [self._tasks[task_id] for task_id in task_ids]

    def update_task(
        self,
        task_id: int,
        *,
        title: str | object = _UNSET,
        description: str | None | object = _UNSET,
        category: TaskCategory | object = _UNSET,
        due_date: datetime | None | object = _UNSET,
    ) -> Task:
        """Partial update: only the keyword arguments passed are changed.

        `due_date=None` clears the due date (and its reminder). Changing the
        due date or the title reconciles the reminder.
        """
        fields: list[str] = []
        params: list = []

        if title is not _UNSET:
            fields.append("title = ?")
            params.append(self._clean_title(title))
        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description)
        if category is not _UNSET:
            fields.append("category = ?")
            params.append(TaskCategory(category).value)
        if due_date is not _UNSET:
            fields.append("due_date = ?")
            params.append(serialize_due_date(normalize_due_date(due_date, self._tz)))

        with self._transaction() as conn:
            previous = self._row_to_task(self._fetch(conn, task_id))
            if fields:
                conn.execute(
                    f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?",
                    (*params, task_id),
                )
            row = self._fetch(conn, task_id)

        # The reminder body carries the title, so a rename reconciles too.
        if due_date is not _UNSET or title is not _UNSET:
            self._reconcile(self._row_to_task(row), previous.due_date)
        self._refresh()
        logger.info("Task #%d updated: %s", task_id, [f.split(" ")[0] for f in fields])
        return self._tasks[task_id]

    def toggle_done(self, task_id: int) -> Task:
        """Flip completion. Reminders are left as they are."""
        with self._transaction() as conn:
            row = self._fetch(conn, task_id)
            conn.execute(
                "UPDATE tasks SET is_done = ? WHERE id = ?",
                (0 if row["is_done"] else 1, task_id),
            )

        self._refresh()
        task = self._tasks[task_id]
        logger.info("Task #%d marked %s", task_id, "done" if task.is_done else "not done")
        return task

    def reconcile_all(self) -> int:
        """Re-derive every task's reminder from the durable store.

        Used at startup, when the reminder service may have lost its state.
        Returns the number of reminders scheduled.
        """
        self._refresh()
        scheduled = 0
        for task in self._tasks.values():
            if self._reminders.reconcile(
                task.id, task.due_date, task.due_date, title=task.title, is_done=task.is_done,
            ):
                scheduled += 1
        logger.info("Reminders resynced: %d of %d task(s) scheduled", scheduled, len(self._tasks))
        return scheduled

    def delete_task(self, task_id: int) -> None:
        """Hard-delete a task and cancel its reminder, whatever its due date."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            deleted = cursor.rowcount > 0

        # Cancel even for unknown ids: the reminder service may hold stale state.
        self._reminders.cancel(task_id)
        if not deleted:
            raise NotFound(task_id)

        self._refresh()
        logger.info("Task #%d deleted", task_id)
