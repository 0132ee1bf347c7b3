"""
Audio collaborators of the session controller.

Defines the microphone and player interfaces the controller drives, the
capture constraints it requests, the microphone error family, and the
``PlaybackHandle`` that owns synthesized audio until playback is over.
Hardware-backed implementations live in ``src.client.devices``.
"""

import io
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from src.core.models import TranscriptionRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureConstraints:
    """Requested microphone configuration.

    The processing flags are forwarded to backends that support them;
    raw PortAudio capture ignores them.
    """

    channels: int = 1
    sample_rate: int = 44100
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class MicrophoneError(Exception):
    """Microphone could not be acquired; ``message`` is user-facing."""

    default_message = "Could not access microphone. Please check your settings and try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MicrophonePermissionError(MicrophoneError):
    default_message = (
        "Microphone access denied. Please allow microphone access in your "
        "system settings and try again."
    )


class MicrophoneNotFoundError(MicrophoneError):
    default_message = "No microphone found. Please connect a microphone and try again."


class MicrophoneBusyError(MicrophoneError):
    default_message = (
        "Could not access microphone. The device may be in use by another application."
    )


# ---------------------------------------------------------------------------
# Microphone
# ---------------------------------------------------------------------------


class MicrophoneStream(ABC):
    """An acquired microphone plus its recorder.

    ``close()`` releases the device and must be safe to call any number of
    times, from any exit path.
    """

    @abstractmethod
    def start(self, on_chunk: Callable[[bytes], None], timeslice: float = 1.0) -> None:
        """Begin recording, delivering one chunk per ``timeslice`` seconds."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop recording and deliver any buffered partial chunk."""

    @abstractmethod
    def close(self) -> None:
        """Release the device (stop all tracks)."""

    @abstractmethod
    def assemble(self, chunks: Sequence[bytes]) -> TranscriptionRequest:
        """Join chunks in arrival order into one uploadable clip."""


class BaseMicrophone(ABC):
    """Source of microphone streams."""

    @abstractmethod
    async def open(self, constraints: CaptureConstraints) -> MicrophoneStream:
        """Acquire the microphone.

        Raises:
            MicrophoneError: One of its subclasses when access fails.
        """


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


class PlaybackHandle:
    """Temporary file holding synthesized audio for the duration of playback.

    ``release()`` deletes the file; only the first call has an effect.
    """

    def __init__(self, path: Path, mime_type: str = "audio/mpeg") -> None:
        self._path = path
        self.mime_type = mime_type
        self._released = False

    @classmethod
    def create(cls, audio: bytes, mime_type: str = "audio/mpeg") -> "PlaybackHandle":
        fd, name = tempfile.mkstemp(prefix="voice-relay-", suffix=".mp3")
        with os.fdopen(fd, "wb") as fh:
            fh.write(audio)
        return cls(Path(name), mime_type)

    @property
    def path(self) -> Path:
        if self._released:
            raise RuntimeError("Playback handle already released")
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Delete the backing file. Returns False if already released."""
        if self._released:
            return False
        self._released = True
        try:
            self._path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not delete playback file %s", self._path, exc_info=True)
        return True


class BasePlayer(ABC):
    """Audio output device."""

    @abstractmethod
    async def play(self, handle: PlaybackHandle, on_ended: Callable[[], None]) -> None:
        """Start playing ``handle``; returns once playback has begun.

        ``on_ended`` is called on the event loop when playback finishes on
        its own. It is not called after ``stop()``.
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop the current playback, if any."""


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap interleaved int16 PCM into a WAV container."""
    samples = np.frombuffer(pcm, dtype=np.int16)
    if channels > 1:
        samples = samples.reshape(-1, channels)
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()
