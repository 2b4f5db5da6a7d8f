"""
Voice Todos — Audio Capture Session.

One session owns one recording lifecycle:

    IDLE -> RECORDING -> STOPPED   (artifact ready)
    IDLE -> RECORDING -> FAILED    (error surfaced)
    IDLE -> FAILED                 (permission denied / device error)

Sessions are single-use. The recording device is released exactly once,
whichever terminal state is reached.
"""

from __future__ import annotations

import logging
import tempfile
import threading
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from voice_todos.core.errors import AlreadyRecording, CaptureError, NotRecording, PermissionDenied
from voice_todos.ports.audio_port import MicrophoneAccess

if TYPE_CHECKING:
    from voice_todos.ports.audio_port import MicrophonePort, RecorderPort

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    FAILED = "failed"


def new_artifact_path(directory: str | Path | None = None) -> Path:
    """recording_<epoch-ms>.m4a in `directory` (system temp dir by default)."""
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    base.mkdir(parents=True, exist_ok=True)
    return base / f"recording_{int(time.time() * 1000)}.m4a"


class AudioCaptureSession:
    """Drives a RecorderPort through a single recording."""

    def __init__(
        self,
        recorder: RecorderPort,
        microphone: MicrophonePort,
        recordings_dir: str | Path | None = None,
    ) -> None:
        self._recorder = recorder
        self._microphone = microphone
        self._recordings_dir = recordings_dir
        self._state = CaptureState.IDLE
        self._artifact: Path | None = None
        self._error: CaptureError | None = None
        self._released = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def error(self) -> CaptureError | None:
        return self._error

    @property
    def artifact(self) -> Path | None:
        return self._artifact

    @property
    def released(self) -> bool:
        return self._released

    def start(self) -> Path:
        """Check microphone access and begin recording.

        Returns the path the artifact will be written to.

        Raises:
            AlreadyRecording: called while RECORDING.
            PermissionDenied: microphone access not granted (session FAILED).
            CaptureError: session already finished, or the device failed to open.
        """
        with self._lock:
            if self._state is CaptureState.RECORDING:
                raise AlreadyRecording()
            if self._state is not CaptureState.IDLE:
                raise CaptureError(f"Capture session already {self._state.value}")

            access = MicrophoneAccess(self._microphone.request_microphone_access())
            if access is not MicrophoneAccess.GRANTED:
                logger.warning("Microphone access %s", access.value)
                raise self._fail(PermissionDenied(access.value))

            path = new_artifact_path(self._recordings_dir)
            try:
                self._recorder.start(path)
            except Exception as exc:
                raise self._fail(CaptureError(f"Could not start recording: {exc}")) from exc

            self._artifact = path
            self._state = CaptureState.RECORDING
            logger.info("Recording started -> %s", path.name)
            return path

    def stop(self) -> Path:
        """Finish the recording and hand over the artifact path.

        Raises:
            NotRecording: called outside RECORDING.
            CaptureError: the device failed while finishing (session FAILED).
        """
        with self._lock:
            if self._state is not CaptureState.RECORDING:
                raise NotRecording()
            try:
                path = self._recorder.stop()
            except Exception as exc:
                self._discard_artifact()
                raise self._fail(CaptureError(f"Could not stop recording: {exc}")) from exc

            self._artifact = Path(path)
            self._state = CaptureState.STOPPED
            self._release()
            logger.info("Recording stopped -> %s", self._artifact.name)
            return self._artifact

    def cancel(self) -> None:
        """Abort an in-flight recording and delete the partial artifact."""
        with self._lock:
            if self._state is not CaptureState.RECORDING:
                return
            try:
                self._recorder.stop()
            except Exception as exc:
                logger.warning("Recorder stop failed during cancel: %s", exc)
            self._discard_artifact()
            self._fail(CaptureError("Recording cancelled"))

    def close(self) -> None:
        """Release the device. Safe to call in any state, any number of times."""
        with self._lock:
            self._release()

    # ---- internals (lock held) ----

    def _fail(self, error: CaptureError) -> CaptureError:
        self._state = CaptureState.FAILED
        self._error = error
        self._release()
        return error

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._recorder.close()
        except Exception as exc:
            logger.warning("Recorder close failed: %s", exc)

    def _discard_artifact(self) -> None:
        if self._artifact is not None:
            self._artifact.unlink(missing_ok=True)
            self._artifact = None
