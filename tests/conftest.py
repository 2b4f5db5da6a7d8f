"""Shared test fixtures and configuration.

Sets up fake environment variables so voice_todos.config doesn't sys.exit(),
and provides fakes for the reminder service, recorder and microphone, a
fixed clock and a temp-file TaskStore.
"""

import os

# Patch env vars BEFORE any voice_todos imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("PARSE_API_KEY", "fake-parse-key-for-tests")
os.environ.setdefault("PARSE_API_BASE_URL", "https://parse.test")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "")

import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from voice_todos.ports.audio_port import MicrophoneAccess

# Every test clock reads this instant.
FIXED_NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc).astimezone()


class FakeReminderService:
    """In-memory ReminderPort: one entry per task id, like a real scheduler."""

    def __init__(self) -> None:
        self.scheduled: dict[int, tuple[str, str, datetime]] = {}
        self.calls: list[tuple] = []
        self.fail = False

    def schedule_at(self, task_id, title, body, at):
        self.calls.append(("schedule_at", task_id, at))
        if self.fail:
            raise RuntimeError("scheduler unavailable")
        self.scheduled[task_id] = (title, body, at)

    def cancel(self, task_id):
        self.calls.append(("cancel", task_id))
        if self.fail:
            raise RuntimeError("scheduler unavailable")
        self.scheduled.pop(task_id, None)

    def exists(self, task_id) -> bool:
        return task_id in self.scheduled


class FakeRecorder:
    """RecorderPort that writes a few bytes instead of touching audio hardware."""

    def __init__(self, fail_on_start=False, fail_on_stop=False) -> None:
        self.fail_on_start = fail_on_start
        self.fail_on_stop = fail_on_stop
        self.stop_delay = 0.0
        self.path: Path | None = None
        self.started = 0
        self.stopped = 0
        self.closed = 0

    def start(self, path):
        if self.fail_on_start:
            raise OSError("device busy")
        self.started += 1
        self.path = Path(path)
        self.path.write_bytes(b"\x00\x00fake-aac")

    def stop(self):
        self.stopped += 1
        if self.stop_delay:
            time.sleep(self.stop_delay)
        if self.fail_on_stop:
            raise OSError("encoder crashed")
        return self.path

    def close(self):
        self.closed += 1


class FakeMicrophone:
    def __init__(self, access=MicrophoneAccess.GRANTED) -> None:
        self.access = access
        self.requests = 0

    def request_microphone_access(self):
        self.requests += 1
        return self.access


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_todos.db")


@pytest.fixture
def reminder_service():
    return FakeReminderService()


@pytest.fixture
def reminders(reminder_service, clock):
    from voice_todos.core.reminders import ReminderScheduler
    return ReminderScheduler(reminder_service, clock=clock)


@pytest.fixture
def task_store(reminders, tmp_db_path):
    """Return a TaskStore backed by a temp file and the fake reminder service."""
    from voice_todos.data.db import TaskStore
    return TaskStore(reminders, db_path=tmp_db_path)


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def capture_session(recorder, microphone, tmp_path):
    from voice_todos.core.capture import AudioCaptureSession
    return AudioCaptureSession(recorder, microphone, recordings_dir=tmp_path / "recordings")
