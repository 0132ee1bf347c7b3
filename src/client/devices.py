"""
sounddevice-backed microphone and speaker.

PortAudio delivers capture buffers on its own thread; they are handed to
the event loop with ``call_soon_threadsafe`` so chunk order and all state
changes stay on the loop thread.
"""

import asyncio
import errno
import logging
from collections.abc import Callable, Sequence

import sounddevice as sd
import soundfile as sf

from src.client.audio import (
    BaseMicrophone,
    BasePlayer,
    CaptureConstraints,
    MicrophoneBusyError,
    MicrophoneError,
    MicrophoneNotFoundError,
    MicrophonePermissionError,
    MicrophoneStream,
    PlaybackHandle,
    encode_wav,
)
from src.core.models import TranscriptionRequest

logger = logging.getLogger(__name__)

# PortAudio error codes (portaudio.h)
_PA_INVALID_DEVICE = -9996
_PA_DEVICE_UNAVAILABLE = -9985

_SAMPLE_WIDTH = 2  # int16


def _classify_portaudio_error(exc: Exception) -> MicrophoneError:
    if isinstance(exc, PermissionError) or getattr(exc, "errno", None) == errno.EACCES:
        return MicrophonePermissionError()
    code = exc.args[1] if len(exc.args) > 1 else None
    if code == _PA_INVALID_DEVICE:
        return MicrophoneNotFoundError()
    if code == _PA_DEVICE_UNAVAILABLE:
        return MicrophoneBusyError()
    return MicrophoneError()


class SoundDeviceStream(MicrophoneStream):
    """Raw int16 capture from one PortAudio input stream."""

    mime_type = "audio/wav"
    filename = "recording.wav"

    def __init__(
        self,
        constraints: CaptureConstraints,
        loop: asyncio.AbstractEventLoop,
        device: int | str | None = None,
    ) -> None:
        self._constraints = constraints
        self._loop = loop
        self._pending = bytearray()
        self._chunk_bytes = constraints.sample_rate * constraints.channels * _SAMPLE_WIDTH
        self._on_chunk: Callable[[bytes], None] | None = None
        self._closed = False
        self._stream = sd.RawInputStream(
            samplerate=constraints.sample_rate,
            channels=constraints.channels,
            dtype="int16",
            device=device,
            callback=self._callback,
        )

    def _callback(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        if status:
            logger.debug("Input stream status: %s", status)
        try:
            self._loop.call_soon_threadsafe(self._push, bytes(indata))
        except RuntimeError:
            # Loop already closed during shutdown
            pass

    def _push(self, data: bytes) -> None:
        self._pending.extend(data)
        while self._on_chunk is not None and len(self._pending) >= self._chunk_bytes:
            chunk = bytes(self._pending[: self._chunk_bytes])
            del self._pending[: self._chunk_bytes]
            self._on_chunk(chunk)

    def start(self, on_chunk: Callable[[bytes], None], timeslice: float = 1.0) -> None:
        frame_bytes = self._constraints.channels * _SAMPLE_WIDTH
        self._chunk_bytes = max(
            frame_bytes, int(self._constraints.sample_rate * timeslice) * frame_bytes
        )
        self._on_chunk = on_chunk
        self._stream.start()

    async def stop(self) -> None:
        if self._closed or not self._stream.active:
            return
        await asyncio.to_thread(self._stream.stop)
        # Let buffers scheduled by the final callbacks land before flushing.
        await asyncio.sleep(0)
        if self._pending and self._on_chunk is not None:
            self._on_chunk(bytes(self._pending))
        self._pending.clear()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close(ignore_errors=True)
        logger.debug("Microphone released")

    def assemble(self, chunks: Sequence[bytes]) -> TranscriptionRequest:
        pcm = b"".join(chunks)
        return TranscriptionRequest(
            audio=encode_wav(pcm, self._constraints.sample_rate, self._constraints.channels),
            mime_type=self.mime_type,
            filename=self.filename,
        )


class SoundDeviceMicrophone(BaseMicrophone):
    """Default (or selected) PortAudio input device."""

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device

    async def open(self, constraints: CaptureConstraints) -> SoundDeviceStream:
        loop = asyncio.get_running_loop()
        try:
            sd.query_devices(self._device, kind="input")
        except (ValueError, sd.PortAudioError) as exc:
            raise MicrophoneNotFoundError() from exc
        try:
            return SoundDeviceStream(constraints, loop, self._device)
        except (sd.PortAudioError, OSError) as exc:
            logger.warning("Could not open input stream: %s", exc)
            raise _classify_portaudio_error(exc) from exc


class SoundDevicePlayer(BasePlayer):
    """Plays MP3 handles on the default output device."""

    def __init__(self) -> None:
        self._watcher: asyncio.Task | None = None

    async def play(self, handle: PlaybackHandle, on_ended: Callable[[], None]) -> None:
        self.stop()
        data, sample_rate = await asyncio.to_thread(sf.read, str(handle.path), dtype="float32")
        sd.play(data, sample_rate)
        self._watcher = asyncio.create_task(self._wait_for_end(on_ended))

    async def _wait_for_end(self, on_ended: Callable[[], None]) -> None:
        await asyncio.to_thread(sd.wait)
        self._watcher = None
        on_ended()

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None
        sd.stop()
