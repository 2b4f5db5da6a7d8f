"""Telegram reminder adapter — implements ReminderPort.

Reminders are one-shot jobs on the Application's JobQueue, named
`reminder:<task_id>` so a task never has more than one pending job. When a
job fires, the reminder text is sent to every chat in `chat_ids`.
"""

from __future__ import annotations

import logging
from datetime import datetime

from telegram.ext import ContextTypes, JobQueue

logger = logging.getLogger(__name__)


def job_name(task_id: int) -> str:
    return f"reminder:{task_id}"


class TelegramReminderService:
    """Telegram JobQueue implementation of ReminderPort."""

    def __init__(self, job_queue: JobQueue, chat_ids: list[int]) -> None:
        self._job_queue = job_queue
        self._chat_ids = list(chat_ids)

    def schedule_at(self, task_id: int, title: str, body: str, at: datetime) -> None:
        self._job_queue.run_once(
            _send_reminder,
            when=at,
            data={"task_id": task_id, "title": title, "body": body, "chat_ids": self._chat_ids},
            name=job_name(task_id),
        )
        logger.info("Reminder job for task #%d queued at %s", task_id, at.isoformat())

    def cancel(self, task_id: int) -> None:
        for job in self._job_queue.get_jobs_by_name(job_name(task_id)):
            job.schedule_removal()
            logger.info("Reminder job for task #%d removed", task_id)


async def _send_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    data = context.job.data
    text = f"⏰ {data['title']}\n{data['body']}"
    for chat_id in data["chat_ids"]:
        try:
            await context.bot.send_message(chat_id=chat_id, text=text)
        except Exception as exc:
            logger.error("Failed to deliver reminder for task #%d to %d: %s", data["task_id"], chat_id, exc)
