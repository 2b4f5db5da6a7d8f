"""Notification port — abstract interface for scheduling task reminders.

Core modules depend on this protocol, never on a specific delivery provider.
Delivery semantics (firing on time while the host is awake) belong to the
implementation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ReminderPort(Protocol):
    """Abstract reminder service used by the ReminderScheduler."""

    def schedule_at(self, task_id: int, title: str, body: str, at: datetime) -> None: ...

    def cancel(self, task_id: int) -> None: ...
