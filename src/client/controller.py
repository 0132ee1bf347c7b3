"""
Voice session controller.

Drives two independent state machines over one relay client:

* input side:  idle -> requesting_permission -> recording -> processing -> done | errored
* output side: idle -> synthesizing -> playing -> idle, or errored

Each side's status is a single frozen value, so combinations such as
"recording and processing" cannot be represented. Both sides share one
rate limiter and one ``enabled`` flag. The microphone stream, the countdown
task, and the playback handle are released on every exit path.

Usage::

    controller = VoiceSessionController(api, SoundDeviceMicrophone(), SoundDevicePlayer())
    await controller.start_recording()
    await controller.wait_until_settled()   # auto-stops after 10 s
    print(controller.target.get_text())
    await controller.aclose()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from src.client.api_client import APIError, RelayAPIClient
from src.client.audio import (
    BaseMicrophone,
    BasePlayer,
    CaptureConstraints,
    MicrophoneError,
    MicrophoneStream,
    PlaybackHandle,
)
from src.core.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Please wait a moment before making another request."
EMPTY_TEXT_MESSAGE = "Please enter some text to convert to speech"
NO_AUDIO_MESSAGE = "No audio data recorded"
START_FAILED_MESSAGE = "Failed to start recording"
TRANSCRIBE_FAILED_MESSAGE = "Failed to transcribe audio. Please try again."
PLAYBACK_FAILED_MESSAGE = "Failed to play audio. Please try again."

# The controller keeps one global slot: both sides share the same window.
_RATE_LIMIT_KEY = "controller"


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class InputState(StrEnum):
    idle = "idle"
    requesting_permission = "requesting_permission"
    recording = "recording"
    processing = "processing"
    done = "done"
    errored = "errored"


class OutputState(StrEnum):
    idle = "idle"
    synthesizing = "synthesizing"
    playing = "playing"
    errored = "errored"


_INPUT_BUSY = frozenset(
    {InputState.requesting_permission, InputState.recording, InputState.processing}
)


@dataclass(frozen=True)
class InputStatus:
    """Input-side status; only the field matching ``state`` is set."""

    state: InputState = InputState.idle
    remaining_seconds: int | None = None  # recording
    transcript: str | None = None  # done
    error: str | None = None  # errored

    @property
    def can_start(self) -> bool:
        return self.state not in _INPUT_BUSY

    @classmethod
    def recording(cls, remaining_seconds: int) -> "InputStatus":
        return cls(InputState.recording, remaining_seconds=remaining_seconds)

    @classmethod
    def done(cls, transcript: str) -> "InputStatus":
        return cls(InputState.done, transcript=transcript)

    @classmethod
    def failed(cls, message: str) -> "InputStatus":
        return cls(InputState.errored, error=message)


@dataclass(frozen=True)
class OutputStatus:
    """Output-side status.

    ``error`` is set when errored, or on a ``playing`` status when a new
    request was rejected while the current audio keeps playing.
    """

    state: OutputState = OutputState.idle
    error: str | None = None

    @classmethod
    def failed(cls, message: str) -> "OutputStatus":
        return cls(OutputState.errored, error=message)

    @classmethod
    def playing(cls, error: str | None = None) -> "OutputStatus":
        return cls(OutputState.playing, error=error)


@dataclass
class RecordingSession:
    """One microphone capture, from permission grant to stop."""

    stream: MicrophoneStream
    remaining_seconds: int
    chunks: list[bytes] = field(default_factory=list)
    countdown: asyncio.Task | None = None

    def add_chunk(self, chunk: bytes) -> None:
        if chunk:
            self.chunks.append(chunk)


class TextTarget:
    """Text surface the controller writes transcripts to and reads speech from."""

    def __init__(self, text: str = "") -> None:
        self._text = text

    def get_text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = text


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class VoiceSessionController:
    """Owns the record -> transcribe and text -> synthesize -> play cycles.

    Args:
        api: Relay client used for both directions.
        microphone: Microphone source.
        player: Audio output.
        target: Text surface; a private ``TextTarget`` by default.
        rate_limiter: Limiter shared by both sides (1 s window by default).
        max_recording_seconds: Countdown ceiling before auto-stop.
        tick_seconds: Countdown tick length.
        timeslice_seconds: Length of each captured chunk.
        voice: Voice requested for synthesis; the relay default when None.
        constraints: Capture configuration requested from the microphone.
        sleep: Awaitable sleep used by the countdown (injectable for tests).
        on_change: Called with both statuses after every transition.
        enabled: Initial value of the shared enabled flag.
    """

    def __init__(
        self,
        api: RelayAPIClient,
        microphone: BaseMicrophone,
        player: BasePlayer,
        *,
        target: TextTarget | None = None,
        rate_limiter: RateLimiter | None = None,
        max_recording_seconds: int = 10,
        tick_seconds: float = 1.0,
        timeslice_seconds: float = 1.0,
        voice: str | None = None,
        constraints: CaptureConstraints | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_change: Callable[[InputStatus, OutputStatus], None] | None = None,
        enabled: bool = True,
    ) -> None:
        self._api = api
        self._microphone = microphone
        self._player = player
        self.target = target or TextTarget()
        self._rate_limiter = rate_limiter or RateLimiter(window=1.0)
        self._max_seconds = max_recording_seconds
        self._tick = tick_seconds
        self._timeslice = timeslice_seconds
        self._voice = voice
        self._constraints = constraints or CaptureConstraints()
        self._sleep = sleep
        self._on_change = on_change
        self._enabled = enabled

        self._input = InputStatus()
        self._output = OutputStatus()
        self._session: RecordingSession | None = None
        self._input_task: asyncio.Task | None = None
        self._playback: PlaybackHandle | None = None
        self._closed = False
        # Bumped by teardown; work started under an older value is discarded
        self._generation = 0

    # -- status --

    @property
    def input_status(self) -> InputStatus:
        return self._input

    @property
    def output_status(self) -> OutputStatus:
        return self._output

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_listening(self) -> bool:
        return self._input.state is InputState.recording

    @property
    def is_speaking(self) -> bool:
        return self._output.state in (OutputState.synthesizing, OutputState.playing)

    def _set_input(self, status: InputStatus) -> None:
        self._input = status
        self._notify()

    def _set_output(self, status: OutputStatus) -> None:
        self._output = status
        self._notify()

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._input, self._output)
        except Exception:
            logger.exception("on_change callback failed")

    # -- enabled flag --

    async def set_enabled(self, enabled: bool) -> None:
        """Enable or disable all actions; disabling tears down active work."""
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            await self._teardown()
            self._set_input(InputStatus())
            self._set_output(OutputStatus())

    async def toggle_enabled(self) -> None:
        await self.set_enabled(not self._enabled)

    # -- input side --

    async def toggle_recording(self) -> None:
        """Stop when recording, otherwise start."""
        if self._input.state is InputState.recording:
            await self.stop_recording()
        else:
            await self.start_recording()

    async def start_recording(self) -> None:
        """Acquire the microphone and begin a time-boxed recording."""
        if not self._enabled or self._closed or not self._input.can_start:
            return
        if not self._rate_limiter.check(_RATE_LIMIT_KEY):
            self._set_input(InputStatus.failed(RATE_LIMIT_MESSAGE))
            return

        generation = self._generation
        self.target.set_text("")
        self._set_input(InputStatus(InputState.requesting_permission))
        try:
            stream = await self._microphone.open(self._constraints)
        except MicrophoneError as exc:
            logger.warning("Microphone unavailable: %s", exc.message)
            if self._generation == generation:
                self._set_input(InputStatus.failed(exc.message))
            return
        except Exception:
            logger.exception("Error starting recording")
            if self._generation == generation:
                self._set_input(InputStatus.failed(START_FAILED_MESSAGE))
            return

        if self._generation != generation:
            # Torn down while the permission prompt was pending
            stream.close()
            return

        session = RecordingSession(
            stream=stream,
            remaining_seconds=self._max_seconds,
        )
        try:
            stream.start(session.add_chunk, timeslice=self._timeslice)
        except Exception:
            logger.exception("Error starting recorder")
            stream.close()
            self._set_input(InputStatus.failed(START_FAILED_MESSAGE))
            return

        self._session = session
        self._set_input(InputStatus.recording(session.remaining_seconds))
        session.countdown = asyncio.create_task(self._run_countdown(session))
        self._input_task = session.countdown

    async def _run_countdown(self, session: RecordingSession) -> None:
        """Tick once per ``tick_seconds``; auto-stop when the count reaches zero."""
        while session.remaining_seconds > 0:
            await self._sleep(self._tick)
            if self._session is not session:
                return
            session.remaining_seconds -= 1
            if session.remaining_seconds > 0:
                self._set_input(InputStatus.recording(session.remaining_seconds))
        logger.info("Recording limit of %ss reached", self._max_seconds)
        await self._finish_recording(session)

    async def stop_recording(self) -> None:
        """Stop recording and transcribe; a no-op unless currently recording."""
        session = self._session
        if session is None or self._input.state is not InputState.recording:
            return
        await self._finish_recording(session)

    async def _finish_recording(self, session: RecordingSession) -> None:
        generation = self._generation
        self._session = None
        self._cancel_countdown(session)
        self._set_input(InputStatus(InputState.processing))
        try:
            await session.stream.stop()
        except Exception:
            logger.exception("Error stopping recorder")
        finally:
            session.stream.close()

        if self._generation != generation:
            return
        if not session.chunks:
            self._set_input(InputStatus.failed(NO_AUDIO_MESSAGE))
            return

        try:
            clip = session.stream.assemble(session.chunks)
            text = await self._api.transcribe_audio(clip)
        except APIError as exc:
            logger.warning("Transcription error: %s", exc.message)
            status = InputStatus.failed(exc.message)
        except Exception:
            logger.exception("Transcription error")
            status = InputStatus.failed(TRANSCRIBE_FAILED_MESSAGE)
        else:
            status = InputStatus.done(text)

        if self._generation != generation:
            logger.debug("Discarding transcription from a torn-down session")
            return
        if status.state is InputState.done:
            self.target.set_text(text)
        self._set_input(status)

    @staticmethod
    def _cancel_countdown(session: RecordingSession) -> None:
        task = session.countdown
        session.countdown = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def wait_until_settled(self) -> None:
        """Wait for an auto-stopping recording and its transcription to finish."""
        task = self._input_task
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    # -- output side --

    async def speak(self, text: str | None = None) -> None:
        """Synthesize ``text`` (default: the target's text) and start playing it."""
        if not self._enabled or self._closed:
            return
        if self._output.state is OutputState.synthesizing:
            return
        if not self._rate_limiter.check(_RATE_LIMIT_KEY):
            self._reject_speech(RATE_LIMIT_MESSAGE)
            return

        if text is None:
            text = self.target.get_text()
        if not text.strip():
            self._reject_speech(EMPTY_TEXT_MESSAGE)
            return

        generation = self._generation
        self._stop_playback()
        self._set_output(OutputStatus(OutputState.synthesizing))
        try:
            audio = await self._api.generate_speech(text, voice=self._voice)
        except APIError as exc:
            logger.warning("Speech generation error: %s", exc.message)
            status = OutputStatus.failed(exc.message)
        except Exception:
            logger.exception("Speech generation error")
            status = OutputStatus.failed(PLAYBACK_FAILED_MESSAGE)
        else:
            status = None

        if self._generation != generation:
            return
        if status is not None:
            self._set_output(status)
            return

        handle = PlaybackHandle.create(audio)
        self._playback = handle
        self._set_output(OutputStatus.playing())
        try:
            await self._player.play(handle, lambda: self._on_playback_ended(handle))
        except Exception:
            logger.exception("Error playing audio")
            if self._playback is handle:
                self._playback = None
            handle.release()
            self._set_output(OutputStatus.failed(PLAYBACK_FAILED_MESSAGE))

    def _reject_speech(self, message: str) -> None:
        """Report a refused request; audio already playing keeps playing."""
        if self._playback is not None:
            self._set_output(OutputStatus.playing(error=message))
        else:
            self._set_output(OutputStatus.failed(message))

    def _on_playback_ended(self, handle: PlaybackHandle) -> None:
        handle.release()
        if self._playback is not handle:
            return
        self._playback = None
        self._set_output(OutputStatus())

    def _stop_playback(self) -> None:
        handle = self._playback
        if handle is None:
            return
        self._playback = None
        self._player.stop()
        handle.release()

    # -- teardown --

    async def _teardown(self) -> None:
        self._generation += 1
        session = self._session
        self._session = None
        if session is not None:
            self._cancel_countdown(session)
            session.stream.close()
        task = self._input_task
        self._input_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._stop_playback()

    async def aclose(self) -> None:
        """Release the microphone, cancel pending work, and free playback."""
        if self._closed:
            return
        self._closed = True
        await self._teardown()
