"""Host microphone adapters — implement MicrophonePort and RecorderPort.

Audio is captured with sounddevice into a WAV file (soundfile), then
encoded to AAC/m4a with ffmpeg, the format the parse-todo endpoint expects.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import sounddevice as sd
import soundfile as sf

from voice_todos.ports.audio_port import MicrophoneAccess

logger = logging.getLogger(__name__)

_CHANNELS = 1
_SUBTYPE = "PCM_16"


class SoundDeviceMicrophone:
    """Access is granted when PortAudio can see at least one input device."""

    def request_microphone_access(self) -> MicrophoneAccess:
        try:
            sd.query_devices(kind="input")
        except (sd.PortAudioError, ValueError) as exc:
            logger.warning("No usable input device: %s", exc)
            return MicrophoneAccess.DENIED
        return MicrophoneAccess.GRANTED


class SoundDeviceRecorder:
    """Records the default input device to `path` (m4a)."""

    def __init__(
        self,
        sample_rate: int = 16000,
        ffmpeg_path: str = "ffmpeg",
        device: int | None = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._ffmpeg_path = ffmpeg_path
        self._device = device
        self._stream: sd.InputStream | None = None
        self._sndfile: sf.SoundFile | None = None
        self._target: Path | None = None
        self._wav_path: Path | None = None

    @classmethod
    def from_settings(cls) -> SoundDeviceRecorder:
        from voice_todos.config import settings

        return cls(sample_rate=settings.SAMPLE_RATE, ffmpeg_path=settings.FFMPEG_PATH)

    def start(self, path: Path) -> None:
        self._target = Path(path)
        self._wav_path = self._target.with_suffix(".wav")
        self._sndfile = sf.SoundFile(
            self._wav_path,
            mode="w",
            samplerate=self._sample_rate,
            channels=_CHANNELS,
            subtype=_SUBTYPE,
        )
        self._stream = sd.InputStream(
            samplerate=self._sample_rate,
            channels=_CHANNELS,
            dtype="int16",
            callback=self._on_audio,
            device=self._device,
        )
        self._stream.start()

    def stop(self) -> Path:
        if self._target is None or self._wav_path is None:
            raise RuntimeError("Recorder was not started")
        self._close_stream()
        self._close_file()
        target, wav_path = self._target, self._wav_path
        self._target = self._wav_path = None
        try:
            self._encode(wav_path, target)
        finally:
            wav_path.unlink(missing_ok=True)
        return target

    def close(self) -> None:
        self._close_stream()
        self._close_file()
        if self._wav_path is not None:
            self._wav_path.unlink(missing_ok=True)
            self._wav_path = None

    def _encode(self, wav_path: Path, target: Path) -> None:
        cmd = [
            self._ffmpeg_path, "-y", "-loglevel", "error",
            "-i", str(wav_path),
            "-c:a", "aac", "-b:a", "128k",
            str(target),
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            target.unlink(missing_ok=True)
            raise RuntimeError(f"ffmpeg failed ({result.returncode}): {result.stderr.strip()}")
        logger.debug("Encoded %s -> %s", wav_path.name, target.name)

    def _on_audio(self, indata, frames, time_info, status) -> None:  # pragma: no cover - sounddevice callback
        if status:
            logger.debug("Input stream status: %s", status)
        if self._sndfile is not None:
            self._sndfile.write(indata.copy())

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None

    def _close_file(self) -> None:
        if self._sndfile is None:
            return
        self._sndfile.flush()
        self._sndfile.close()
        self._sndfile = None
