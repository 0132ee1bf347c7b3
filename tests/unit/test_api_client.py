"""Unit tests for the RelayAPIClient gateway.

Runs the client against ``httpx.MockTransport`` handlers so the health
check, the main request, and each failure category are exercised without
a live relay.
"""

import asyncio
import json

import httpx
import pytest

from src.client.api_client import CONNECTION_FAILED_MESSAGE, APIError, RelayAPIClient
from src.core.models import TranscriptionRequest

CLIP = TranscriptionRequest(audio=b"RIFFfake", mime_type="audio/wav", filename="recording.wav")


def _client(handler) -> RelayAPIClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://relay")
    return RelayAPIClient(client=http)


class Recorder:
    """MockTransport handler that records requests and answers per path."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes[request.url.path]
        if isinstance(route, Exception):
            raise route
        return route

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _health_ok() -> httpx.Response:
    return httpx.Response(200, json={"status": "ok"})


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------


async def test_transcribe_checks_health_then_uploads():
    handler = Recorder(
        {"/health": _health_ok(), "/transcribe": httpx.Response(200, json={"text": "hi"})}
    )

    async with _client(handler) as api:
        text = await api.transcribe_audio(CLIP)

    assert text == "hi"
    assert handler.paths == ["/health", "/transcribe"]
    upload = handler.requests[1]
    assert upload.method == "POST"
    assert upload.headers["content-type"].startswith("multipart/form-data")
    body = upload.content
    assert b'name="audio"' in body
    assert b'filename="recording.wav"' in body
    assert b"RIFFfake" in body


async def test_generate_speech_returns_bytes():
    handler = Recorder(
        {
            "/health": _health_ok(),
            "/speech": httpx.Response(
                200, content=b"mp3bytes", headers={"content-type": "audio/mpeg"}
            ),
        }
    )

    async with _client(handler) as api:
        audio = await api.generate_speech("hello")

    assert audio == b"mp3bytes"
    assert json.loads(handler.requests[1].content) == {"text": "hello"}


async def test_generate_speech_sends_voice_when_given():
    handler = Recorder({"/health": _health_ok(), "/speech": httpx.Response(200, content=b"x")})

    async with _client(handler) as api:
        await api.generate_speech("hello", voice="echo")

    assert json.loads(handler.requests[1].content) == {"text": "hello", "voice": "echo"}


# ---------------------------------------------------------------------------
# Health gate
# ---------------------------------------------------------------------------


async def test_unreachable_relay_skips_main_request():
    handler = Recorder({"/health": httpx.ConnectError("refused"), "/speech": _health_ok()})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.generate_speech("hello")

    assert exc_info.value.category == "connection"
    assert exc_info.value.message == CONNECTION_FAILED_MESSAGE
    assert handler.paths == ["/health"]


async def test_unhealthy_status_skips_main_request():
    handler = Recorder({"/health": httpx.Response(503), "/transcribe": _health_ok()})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.transcribe_audio(CLIP)

    assert exc_info.value.category == "connection"
    assert handler.paths == ["/health"]


# ---------------------------------------------------------------------------
# Main request failures
# ---------------------------------------------------------------------------


async def test_transcribe_timeout_has_distinct_message():
    handler = Recorder({"/health": _health_ok(), "/transcribe": httpx.ReadTimeout("slow")})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.transcribe_audio(CLIP)

    assert exc_info.value.category == "timeout"
    assert "timed out" in exc_info.value.message
    assert "under 10 seconds" in exc_info.value.message


async def test_speech_timeout_has_distinct_message():
    handler = Recorder({"/health": _health_ok(), "/speech": httpx.WriteTimeout("slow")})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.generate_speech("hello")

    assert exc_info.value.category == "timeout"
    assert exc_info.value.message == "Speech generation request timed out. Try shorter text."


async def test_network_failure_after_health_is_connection_error():
    handler = Recorder({"/health": _health_ok(), "/speech": httpx.RemoteProtocolError("reset")})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.generate_speech("hello")

    assert exc_info.value.category == "connection"
    assert exc_info.value.message == CONNECTION_FAILED_MESSAGE


async def test_http_error_surfaces_body_error_field():
    handler = Recorder(
        {
            "/health": _health_ok(),
            "/speech": httpx.Response(400, json={"error": "No text provided", "code": "NO_TEXT"}),
        }
    )

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.generate_speech(" ")

    assert exc_info.value.category == "http"
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "No text provided"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, content=b"<html>oops</html>"),
        httpx.Response(500, json={"unexpected": True}),
        httpx.Response(502, json=["not", "a", "dict"]),
    ],
)
async def test_http_error_without_usable_body_uses_default(response):
    handler = Recorder({"/health": _health_ok(), "/transcribe": response})

    async with _client(handler) as api:
        with pytest.raises(APIError) as exc_info:
            await api.transcribe_audio(CLIP)

    assert exc_info.value.message == "Failed to transcribe audio"
    assert exc_info.value.status_code == response.status_code


async def test_overall_deadline_bounds_slow_round_trip():
    """A response that never finishes hits the client deadline, not a phase timeout."""

    async def stalled(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            return _health_ok()
        await asyncio.sleep(5)
        return httpx.Response(200, json={"text": "late"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(stalled), base_url="http://relay")
    async with RelayAPIClient(timeout=0.05, client=http) as api:
        with pytest.raises(APIError) as exc_info:
            await api.transcribe_audio(CLIP)

    assert exc_info.value.category == "timeout"
    assert "timed out" in exc_info.value.message
