"""
OpenAI speech provider implementation.

Uses the OpenAI Python SDK (``openai.AsyncOpenAI``) for Whisper transcription
and TTS synthesis. Timeout and retry count are delegated to the SDK client;
this module adds no retry layer of its own.
"""

import logging

from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    OpenAIError,
    UnprocessableEntityError,
)

from src.core.config import get_settings
from src.services.provider.base import BaseSpeechProvider, ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)


def classify_error(exc: OpenAIError) -> ProviderError:
    """Translate an SDK exception into a ``ProviderError``.

    ``APITimeoutError`` is a subclass of ``APIConnectionError``, so both a
    timeout and a dropped connection land in the ``timeout`` kind.
    """
    if isinstance(exc, APIConnectionError):
        return ProviderError(ProviderErrorKind.timeout, str(exc))
    if isinstance(exc, AuthenticationError):
        return ProviderError(ProviderErrorKind.authentication, str(exc), exc.status_code)
    if isinstance(exc, (BadRequestError, UnprocessableEntityError)):
        return ProviderError(ProviderErrorKind.invalid_request, str(exc), exc.status_code)
    if isinstance(exc, APIStatusError):
        return ProviderError(ProviderErrorKind.upstream, str(exc), exc.status_code)
    return ProviderError(ProviderErrorKind.upstream, str(exc))


class OpenAISpeechProvider(BaseSpeechProvider):
    """OpenAI audio API provider.

    Args:
        api_key: OpenAI secret; defaults to ``settings.openai_api_key``.
        timeout: Per-attempt request timeout in seconds.
        max_retries: SDK-level retries on transient failures.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transcription_model = self._settings.transcription_model
        self._language = self._settings.transcription_language
        self._speech_model = self._settings.speech_model
        self._client = AsyncOpenAI(
            api_key=api_key or self._settings.openai_api_key,
            timeout=timeout if timeout is not None else self._settings.provider_timeout,
            max_retries=(
                max_retries if max_retries is not None else self._settings.provider_max_retries
            ),
        )

    async def transcribe(self, audio: bytes, mime_type: str, filename: str) -> str:
        """Transcribe with deterministic decoding and an English hint."""
        try:
            response = await self._client.audio.transcriptions.create(
                model=self._transcription_model,
                file=(filename, audio, mime_type),
                response_format="json",
                temperature=0,
                language=self._language,
            )
        except OpenAIError as exc:
            error = classify_error(exc)
            logger.warning("OpenAI transcription failed (%s): %s", error.kind, error.message)
            raise error from exc
        return response.text or ""

    async def synthesize(self, text: str, voice: str) -> bytes:
        """Generate MP3 speech for ``text``."""
        try:
            response = await self._client.audio.speech.create(
                model=self._speech_model,
                voice=voice,
                input=text,
                response_format="mp3",
            )
        except OpenAIError as exc:
            error = classify_error(exc)
            logger.warning("OpenAI speech synthesis failed (%s): %s", error.kind, error.message)
            raise error from exc
        return response.content
