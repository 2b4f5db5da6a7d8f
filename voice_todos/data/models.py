"""
Voice Todos — Data Models.

Tasks persist in SQLite across restarts. A task's due date is the only
field that drives reminders; everything else is display data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TaskCategory(str, Enum):
    PERSONAL = "personal"
    WORK = "work"

    @classmethod
    def normalize(cls, raw: str | None) -> TaskCategory:
        """Map a free-form remote category onto the enum.

        "personal" (any case) stays personal; every other label is work.
        """
        if (raw or "").strip().lower() == cls.PERSONAL.value:
            return cls.PERSONAL
        return cls.WORK


@dataclass
class Task:
    """A single to-do item.

    `id` is allocated by the store (AUTOINCREMENT, never reused).
    `due_date` is timezone-aware, local, minute precision — or None.
    """

    id: int
    title: str
    description: str | None = None
    is_done: bool = False
    category: TaskCategory = TaskCategory.PERSONAL
    due_date: datetime | None = None
