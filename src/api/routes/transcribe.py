"""
Transcription endpoint.

Accepts one multipart ``audio`` part, forwards it to the speech provider,
and maps classified provider failures onto the relay error taxonomy.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from src.api.dependencies import enforce_rate_limit, get_provider
from src.core.config import Settings, get_settings
from src.core.exceptions import (
    AudioTooLargeError,
    InvalidAudioFormatError,
    MissingAudioError,
    RelayError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTimeoutError,
)
from src.core.models import TranscriptionRequest, TranscriptionResponse
from src.services.provider import BaseSpeechProvider, ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcription"])

TIMEOUT_MESSAGE = "Connection timed out. Try a shorter audio clip (under 10 seconds)."
FAILED_MESSAGE = "Failed to transcribe audio."
NO_TEXT_MESSAGE = "Failed to transcribe audio. No text returned."


async def _read_upload(audio: UploadFile | None, max_bytes: int) -> TranscriptionRequest:
    """Validate the uploaded part and freeze it into a TranscriptionRequest."""
    if audio is None:
        raise MissingAudioError()
    # Read one byte past the limit so oversized uploads are detected
    # without buffering an arbitrarily large body.
    data = await audio.read(max_bytes + 1)
    if not data:
        raise MissingAudioError()
    if len(data) > max_bytes:
        raise AudioTooLargeError(max_bytes)
    return TranscriptionRequest(
        audio=data,
        mime_type=audio.content_type or "application/octet-stream",
        filename=audio.filename or "recording.webm",
    )


def _map_provider_error(exc: ProviderError) -> RelayError:
    if exc.kind is ProviderErrorKind.invalid_request:
        return InvalidAudioFormatError()
    if exc.kind is ProviderErrorKind.authentication:
        return UpstreamAuthError()
    if exc.kind is ProviderErrorKind.timeout:
        return UpstreamTimeoutError(TIMEOUT_MESSAGE)
    return UpstreamError(FAILED_MESSAGE)


@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def transcribe_audio(
    audio: UploadFile | None = File(None),
    settings: Settings = Depends(get_settings),
    provider: BaseSpeechProvider = Depends(get_provider),
) -> TranscriptionResponse:
    """Transcribe an uploaded recording into text."""
    request = await _read_upload(audio, settings.max_upload_bytes)
    logger.info(
        "Processing audio file: size=%d mimetype=%s name=%s",
        request.size,
        request.mime_type,
        request.filename,
    )

    try:
        text = await provider.transcribe(request.audio, request.mime_type, request.filename)
    except ProviderError as exc:
        raise _map_provider_error(exc) from exc
    except Exception as exc:
        logger.exception("Unexpected transcription failure")
        raise UpstreamError(FAILED_MESSAGE) from exc

    if not text:
        logger.error("Provider returned no text for %s", request.filename)
        raise UpstreamError(NO_TEXT_MESSAGE)

    logger.info("Transcription completed successfully")
    return TranscriptionResponse(text=text)
