"""
Speech synthesis endpoint.

Validates ``{"text", "voice"}``, forwards it to the speech provider and
returns the MP3 bytes with an explicit ``Content-Length``.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from src.api.dependencies import enforce_rate_limit, get_provider
from src.core.config import Settings, get_settings
from src.core.exceptions import MissingTextError, TextTooLongError, UpstreamError, UpstreamTimeoutError
from src.core.models import SpeechRequest
from src.services.provider import BaseSpeechProvider, ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

router = APIRouter(tags=["speech"])

TIMEOUT_MESSAGE = "Request timed out. Consider using shorter text."
FAILED_MESSAGE = "Failed to generate speech."


def _validate_text(text: str, max_length: int) -> None:
    if not text.strip():
        raise MissingTextError()
    if len(text) > max_length:
        raise TextTooLongError(max_length)


@router.post(
    "/speech",
    response_class=Response,
    responses={200: {"content": {"audio/mpeg": {}}}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def generate_speech(
    body: SpeechRequest,
    settings: Settings = Depends(get_settings),
    provider: BaseSpeechProvider = Depends(get_provider),
) -> Response:
    """Synthesize ``body.text`` and return it as ``audio/mpeg``."""
    _validate_text(body.text, settings.max_text_length)
    voice = body.voice or settings.default_voice

    try:
        audio = await provider.synthesize(body.text, voice)
    except ProviderError as exc:
        if exc.kind is ProviderErrorKind.timeout:
            raise UpstreamTimeoutError(TIMEOUT_MESSAGE) from exc
        raise UpstreamError(FAILED_MESSAGE) from exc
    except Exception as exc:
        logger.exception("Unexpected speech generation failure")
        raise UpstreamError(FAILED_MESSAGE) from exc

    logger.info("Generated %d bytes of speech (voice=%s)", len(audio), voice)
    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Content-Length": str(len(audio))},
    )
