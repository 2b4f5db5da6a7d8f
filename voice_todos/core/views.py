"""Task list views — filtering and due-date labels.

Filtering by completion or category is a presentation concern; the store
always hands out the full snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from voice_todos.core.dates import now_local
from voice_todos.data.models import Task, TaskCategory


class DoneFilter(Enum):
    ALL = "all"
    DONE = "done"
    UNDONE = "undone"


class CategoryFilter(Enum):
    ALL = "all"
    PERSONAL = "personal"
    WORK = "work"


def filter_tasks(
    tasks: Iterable[Task],
    done: DoneFilter = DoneFilter.ALL,
    category: CategoryFilter = CategoryFilter.ALL,
) -> list[Task]:
    out: list[Task] = []
    for task in tasks:
        if done is DoneFilter.DONE and not task.is_done:
            continue
        if done is DoneFilter.UNDONE and task.is_done:
            continue
        if category is not CategoryFilter.ALL and task.category is not TaskCategory(category.value):
            continue
        out.append(task)
    return out


def is_overdue(task: Task, now: datetime | None = None) -> bool:
    """Due in the past and still open."""
    if task.due_date is None or task.is_done:
        return False
    now = now or now_local()
    return task.due_date < now


def _time_label(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def due_label(task: Task, now: datetime | None = None) -> str | None:
    """Human label for a due date, relative to `now`.

    "Today, 9:00 AM" / "Tomorrow, 9:00 AM" / "Friday, 9:00 AM" (within a
    week) / "Jun 1, 2025, 9:00 AM". Past dates always use the full form.
    """
    if task.due_date is None:
        return None
    now = now or now_local()
    due = task.due_date.astimezone(now.tzinfo)

    days = (due.date() - now.date()).days
    if days == 0:
        day = "Today"
    elif days == 1:
        day = "Tomorrow"
    elif 1 < days < 7:
        day = due.strftime("%A")
    else:
        day = f"{due.strftime('%b')} {due.day}, {due.year}"
    return f"{day}, {_time_label(due)}"
