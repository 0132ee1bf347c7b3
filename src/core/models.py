"""
Pydantic v2 request / response models shared by the relay and its client.
"""

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptionRequest(BaseModel):
    """One audio clip bound for transcription."""

    model_config = ConfigDict(frozen=True)

    audio: bytes
    mime_type: str = "audio/wav"
    filename: str = "recording.wav"

    @property
    def size(self) -> int:
        return len(self.audio)


class TranscriptionResponse(BaseModel):
    """POST /transcribe response."""

    text: str


# ---------------------------------------------------------------------------
# Speech
# ---------------------------------------------------------------------------


class SpeechRequest(BaseModel):
    """POST /speech request body.

    ``text`` defaults to empty so that a missing field is reported with the
    same "No text provided" error as a blank one.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    voice: str | None = None


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """JSON envelope returned for every failed request."""

    error: str
    code: str
    timestamp: str
