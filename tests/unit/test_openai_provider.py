"""Unit tests for the OpenAI speech provider and its error classification."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
    UnprocessableEntityError,
)

from src.services.provider import ProviderError, ProviderErrorKind, create_provider
from src.services.provider.openai import OpenAISpeechProvider, classify_error

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")


def _status_error(cls, status: int):
    response = httpx.Response(status, request=_REQUEST, json={"error": {"message": "nope"}})
    return cls("nope", response=response, body={"error": {"message": "nope"}})


def _mock_settings(**overrides):
    """Return a fake Settings object with sensible defaults."""
    defaults = {
        "openai_api_key": "sk-test-key",
        "transcription_model": "whisper-1",
        "transcription_language": "en",
        "speech_model": "tts-1",
        "provider_timeout": 30.0,
        "provider_max_retries": 2,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_client():
    """Return an ``AsyncMock`` mimicking ``AsyncOpenAI``."""
    client = AsyncMock()
    client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text="hello world")
    )
    client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"mp3"))
    return client


@pytest.fixture
def provider(mock_client):
    with patch("src.services.provider.openai.AsyncOpenAI", return_value=mock_client):
        return OpenAISpeechProvider(settings=_mock_settings())


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestInit:
    def test_client_uses_settings(self):
        with patch("src.services.provider.openai.AsyncOpenAI") as mock_cls:
            OpenAISpeechProvider(settings=_mock_settings())

        mock_cls.assert_called_once_with(api_key="sk-test-key", timeout=30.0, max_retries=2)

    def test_explicit_args_override_settings(self):
        with patch("src.services.provider.openai.AsyncOpenAI") as mock_cls:
            OpenAISpeechProvider(
                api_key="sk-other", timeout=5.0, max_retries=0, settings=_mock_settings()
            )

        mock_cls.assert_called_once_with(api_key="sk-other", timeout=5.0, max_retries=0)

    def test_factory_builds_openai(self):
        with patch("src.services.provider.openai.AsyncOpenAI"):
            provider = create_provider("openai", settings=_mock_settings())
        assert isinstance(provider, OpenAISpeechProvider)

    def test_factory_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown speech provider"):
            create_provider("nonexistent")


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


class TestTranscribe:
    async def test_fixed_parameters(self, provider, mock_client):
        text = await provider.transcribe(b"audio", "audio/webm", "recording.webm")

        assert text == "hello world"
        mock_client.audio.transcriptions.create.assert_awaited_once_with(
            model="whisper-1",
            file=("recording.webm", b"audio", "audio/webm"),
            response_format="json",
            temperature=0,
            language="en",
        )

    async def test_none_text_becomes_empty(self, provider, mock_client):
        mock_client.audio.transcriptions.create.return_value = SimpleNamespace(text=None)
        assert await provider.transcribe(b"a", "audio/wav", "a.wav") == ""

    async def test_sdk_error_is_classified(self, provider, mock_client):
        mock_client.audio.transcriptions.create.side_effect = APITimeoutError(request=_REQUEST)

        with pytest.raises(ProviderError) as exc_info:
            await provider.transcribe(b"a", "audio/wav", "a.wav")

        assert exc_info.value.kind is ProviderErrorKind.timeout
        assert isinstance(exc_info.value.__cause__, APITimeoutError)


class TestSynthesize:
    async def test_returns_audio_bytes(self, provider, mock_client):
        audio = await provider.synthesize("hi there", "nova")

        assert audio == b"mp3"
        mock_client.audio.speech.create.assert_awaited_once_with(
            model="tts-1", voice="nova", input="hi there", response_format="mp3"
        )

    async def test_auth_error_is_classified(self, provider, mock_client):
        mock_client.audio.speech.create.side_effect = _status_error(AuthenticationError, 401)

        with pytest.raises(ProviderError) as exc_info:
            await provider.synthesize("hi", "alloy")

        assert exc_info.value.kind is ProviderErrorKind.authentication
        assert exc_info.value.status_code == 401


# ---------------------------------------------------------------------------
# classify_error
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("exc", "kind", "status"),
    [
        (APITimeoutError(request=_REQUEST), ProviderErrorKind.timeout, None),
        (APIConnectionError(request=_REQUEST), ProviderErrorKind.timeout, None),
        (_status_error(AuthenticationError, 401), ProviderErrorKind.authentication, 401),
        (_status_error(BadRequestError, 400), ProviderErrorKind.invalid_request, 400),
        (
            _status_error(UnprocessableEntityError, 422),
            ProviderErrorKind.invalid_request,
            422,
        ),
        (_status_error(RateLimitError, 429), ProviderErrorKind.upstream, 429),
        (_status_error(InternalServerError, 500), ProviderErrorKind.upstream, 500),
    ],
)
def test_classify_error(exc, kind, status):
    error = classify_error(exc)
    assert error.kind is kind
    assert error.status_code == status
