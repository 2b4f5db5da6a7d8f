"""Error taxonomy for capture, ingestion and persistence.

Nothing here is fatal to the process: every error either terminates the
ingestion state machine in FAILED or is returned to the caller.
"""

from __future__ import annotations


class TodoError(Exception):
    """Base class for every error raised by the core."""


# ---------------------------------------------------------------------------
# Capture misuse
# ---------------------------------------------------------------------------


class CaptureError(TodoError):
    """Raised when a recording session cannot start, stop or produce audio."""


class PermissionDenied(CaptureError):
    """Microphone access was not granted."""

    def __init__(self, access: str) -> None:
        self.access = access
        if access == "permanently_denied":
            message = "Please enable microphone permission in settings."
        else:
            message = "Microphone permission is required to record audio."
        super().__init__(message)


class AlreadyRecording(CaptureError):
    def __init__(self) -> None:
        super().__init__("A recording is already in progress")


class NotRecording(CaptureError):
    def __init__(self) -> None:
        super().__init__("No recording is in progress")


# ---------------------------------------------------------------------------
# Remote transcription
# ---------------------------------------------------------------------------


class IngestionError(TodoError):
    """Raised when the remote parser cannot turn an artifact into tasks."""


class RemoteParseError(IngestionError):
    """The endpoint answered with anything other than HTTP 200."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Failed with status: {status_code}")


class MalformedResponse(IngestionError):
    """HTTP 200, but the body does not match the todos contract."""


class TransportError(IngestionError):
    """The request never produced a response (DNS, connect, timeout...)."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PersistenceError(TodoError):
    """A store transaction failed and was rolled back."""


class NotFound(TodoError):
    """No task exists with the requested id."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")
