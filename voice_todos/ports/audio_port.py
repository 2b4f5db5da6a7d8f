"""Audio ports — microphone capability and recording device.

AudioCaptureSession depends on these protocols so tests can swap in fakes
and hosts can swap in their own audio stack.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol


class MicrophoneAccess(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PERMANENTLY_DENIED = "permanently_denied"


class MicrophonePort(Protocol):
    """Capability boundary: may this process record from the microphone?"""

    def request_microphone_access(self) -> MicrophoneAccess: ...


class RecorderPort(Protocol):
    """A single recording device.

    `start` begins writing audio to `path`; `stop` finishes the file and
    returns its final path; `close` releases the device and must be safe to
    call more than once.
    """

    def start(self, path: Path) -> None: ...

    def stop(self) -> Path: ...

    def close(self) -> None: ...
