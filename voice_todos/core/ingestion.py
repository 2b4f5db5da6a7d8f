"""
Voice Todos — Ingestion Coordinator.

Turns one spoken utterance into tasks:

    IDLE -> CAPTURING -> UPLOADING -> SUCCEEDED | FAILED

Capture begins as soon as the coordinator is constructed ("record
immediately on open"). `toggle()` is the only external transition: it stops
the recording and uploads it. A coordinator is single-use; recording again
needs a fresh instance.

The artifact is deleted on every path out of UPLOADING, before the terminal
state is published.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from voice_todos.core.errors import CaptureError

if TYPE_CHECKING:
    from voice_todos.core.capture import AudioCaptureSession
    from voice_todos.core.transcription import TranscriptionClient
    from voice_todos.data.db import TaskStore
    from voice_todos.data.models import Task

logger = logging.getLogger(__name__)


class IngestionState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({IngestionState.SUCCEEDED, IngestionState.FAILED})


def _delete_artifact(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
        logger.debug("Artifact %s deleted", path.name)
    except OSError as exc:
        logger.error("Could not delete artifact %s: %s", path, exc)


class IngestionCoordinator:
    """Owns one capture → transcription → store run."""

    def __init__(
        self,
        session: AudioCaptureSession,
        client: TranscriptionClient,
        store: TaskStore,
        on_change: Callable[[IngestionCoordinator], None] | None = None,
    ) -> None:
        self._session = session
        self._client = client
        self._store = store
        self._on_change = on_change
        self._state = IngestionState.IDLE
        self._error_message: str | None = None
        self._tasks: list[Task] = []
        self._artifact: Path | None = None
        self._busy = False
        self._disposed = False

        self._begin_capture()

    # ---- observable state ----

    @property
    def state(self) -> IngestionState:
        return self._state

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def tasks(self) -> list[Task]:
        """Tasks created by a successful run (empty otherwise)."""
        return list(self._tasks)

    @property
    def artifact(self) -> Path | None:
        """The artifact while it is owned by this coordinator, else None."""
        return self._artifact

    @property
    def is_finished(self) -> bool:
        return self._state in TERMINAL_STATES

    # ---- transitions ----

    async def toggle(self) -> IngestionState:
        """Stop capturing and upload. No-op in every state but CAPTURING."""
        if self._state is not IngestionState.CAPTURING:
            logger.debug("toggle() ignored in state %s", self._state.value)
            return self._state
        if self._busy:
            logger.warning("toggle() ignored: previous transition still in flight")
            return self._state

        self._busy = True
        try:
            try:
                # Stopping flushes and encodes the recording: keep it off the event loop.
                artifact = await asyncio.to_thread(self._session.stop)
            except CaptureError as exc:
                self._finish_failed(exc)
                return self._state

            self._artifact = artifact
            self._set_state(IngestionState.UPLOADING)
            await self._upload(artifact)
            return self._state
        finally:
            self._busy = False

    async def dispose(self) -> None:
        """Release everything this coordinator holds.

        While capturing, the recording is cancelled and the partial artifact
        deleted. While uploading, the call is left to settle on its own;
        cleanup still happens then, but no further change is reported.
        """
        if self._disposed:
            return
        if self._state is IngestionState.CAPTURING and not self._busy:
            self._session.cancel()
            self._finish_failed(CaptureError("Recording cancelled"))
        self._disposed = True
        # An in-flight stop releases the device itself; closing here would wait on its lock.
        if not self._busy:
            self._session.close()

    # ---- internals ----

    def _begin_capture(self) -> None:
        self._set_state(IngestionState.CAPTURING)
        try:
            self._session.start()
        except CaptureError as exc:
            self._finish_failed(exc)

    async def _upload(self, artifact: Path) -> None:
        tasks: list[Task] = []
        error: Exception | None = None
        try:
            candidates = await self._client.parse(artifact)
            tasks = await asyncio.to_thread(self._store.add_batch, candidates)
        except Exception as exc:  # every failure ends the run in FAILED
            error = exc
        finally:
            _delete_artifact(artifact)
            self._artifact = None

        if error is not None:
            self._finish_failed(error)
        else:
            self._tasks = tasks
            logger.info("Ingestion succeeded: %d task(s) created", len(tasks))
            self._set_state(IngestionState.SUCCEEDED)

    def _finish_failed(self, error: Exception) -> None:
        self._error_message = str(error)
        logger.error("Ingestion failed (%s): %s", type(error).__name__, error)
        self._set_state(IngestionState.FAILED)

    def _set_state(self, state: IngestionState) -> None:
        self._state = state
        logger.debug("Ingestion -> %s", state.value)
        if self._on_change is None or self._disposed:
            return
        try:
            self._on_change(self)
        except Exception as exc:
            logger.error("on_change listener raised: %s", exc)
