"""
Voice Todos — Reminder Scheduler.

Maps a task id and its optional due date onto exactly one scheduled
reminder. Reconciliation is unconditional: every due-date-affecting
mutation cancels first and reschedules only when the due date lies in the
future, so the external reminder service never drifts from the store even
after a restart.

Calls into the reminder service are fire-and-forget: a failure is logged
and swallowed, never propagated into the store mutation that caused it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from voice_todos.core.dates import now_local

if TYPE_CHECKING:
    from voice_todos.ports.notification_port import ReminderPort

logger = logging.getLogger(__name__)

REMINDER_TITLE = "To-Do Reminder"


class ReminderScheduler:
    """Keeps one reminder per task with a future due date, none otherwise."""

    def __init__(
        self,
        service: ReminderPort,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self._service = service
        self._clock = clock

    def reconcile(
        self,
        task_id: int,
        previous_due: datetime | None,
        new_due: datetime | None,
        *,
        title: str = "",
        is_done: bool = False,
    ) -> bool:
        """Cancel any reminder for `task_id`, then schedule one if warranted.

        `previous_due` is informational only: the decision depends solely on
        `new_due`, completion and the clock at the moment of the call.

        Returns True when a reminder was scheduled.
        """
        self.cancel(task_id)

        if new_due is None or is_done:
            logger.debug("Task #%d: no reminder (due=%s, done=%s)", task_id, new_due, is_done)
            return False

        now = self._clock()
        if new_due <= now:
            logger.info("Task #%d: due %s is not in the future, no reminder", task_id, new_due)
            return False

        try:
            self._service.schedule_at(task_id, REMINDER_TITLE, title, new_due)
        except Exception as exc:
            logger.error("Failed to schedule reminder for task #%d: %s", task_id, exc)
            return False

        logger.info(
            "Task #%d: reminder scheduled at %s (was %s)", task_id, new_due.isoformat(), previous_due,
        )
        return True

    def cancel(self, task_id: int) -> None:
        try:
            self._service.cancel(task_id)
        except Exception as exc:
            logger.error("Failed to cancel reminder for task #%d: %s", task_id, exc)
