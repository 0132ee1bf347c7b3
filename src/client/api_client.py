"""
Asynchronous HTTP client for the voice relay.

Every call first checks ``GET /health`` and fails fast with a connection
error when the relay is down, so the user sees one consistent message
instead of a half-sent upload.
"""

import asyncio
import logging

import httpx

from src.core.models import TranscriptionRequest

logger = logging.getLogger(__name__)

CONNECTION_FAILED_MESSAGE = "Server connection failed. Please ensure the server is running."


class APIError(Exception):
    """User-friendly relay error with categorized message.

    Categories: "connection", "timeout", "http".
    The session controller displays ``message`` as is.
    """

    def __init__(
        self,
        message: str,
        category: str = "http",
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(message)


class RelayAPIClient:
    """Thin async wrapper around httpx for calling the relay.

    Args:
        base_url: Base URL of the relay server.
        timeout: Bound on each request, including the provider round-trip.
        client: Pre-built ``httpx.AsyncClient`` (tests pass one with a
            mock transport).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def __aenter__(self) -> "RelayAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- health --

    async def check_connection(self) -> None:
        """Raise ``APIError("connection")`` unless ``/health`` answers 200."""
        try:
            resp = await self._client.get("/health")
        except httpx.HTTPError as exc:
            logger.warning("Health check failed: %s", exc)
            raise APIError(CONNECTION_FAILED_MESSAGE, category="connection") from None
        if resp.status_code != 200:
            logger.warning("Health check returned %s", resp.status_code)
            raise APIError(CONNECTION_FAILED_MESSAGE, category="connection")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout_message: str,
        default_error: str,
        **kwargs,
    ) -> httpx.Response:
        """Health-check, then execute the main request with error normalization.

        Raises:
            APIError: On an unreachable relay, a timeout, or a non-2xx status.
        """
        await self.check_connection()
        try:
            # Deadline for the whole round-trip; httpx timeouts are per phase
            async with asyncio.timeout(self._timeout):
                resp = await self._client.request(method, path, **kwargs)
        except (httpx.TimeoutException, TimeoutError):
            raise APIError(timeout_message, category="timeout") from None
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            raise APIError(CONNECTION_FAILED_MESSAGE, category="connection") from None

        if resp.is_success:
            return resp
        try:
            body = resp.json()
            message = body.get("error") or body.get("detail") or default_error
        except (ValueError, AttributeError):
            message = default_error
        raise APIError(str(message), category="http", status_code=resp.status_code)

    # -- transcription --

    async def transcribe_audio(self, clip: TranscriptionRequest) -> str:
        """Upload ``clip`` and return the transcript text."""
        resp = await self._request(
            "POST",
            "/transcribe",
            files={"audio": (clip.filename, clip.audio, clip.mime_type)},
            timeout_message="Transcription request timed out. "
            "Try a shorter recording (under 10 seconds).",
            default_error="Failed to transcribe audio",
        )
        return resp.json().get("text", "")

    # -- speech --

    async def generate_speech(self, text: str, voice: str | None = None) -> bytes:
        """Return the synthesized MP3 bytes for ``text``."""
        body: dict = {"text": text}
        if voice:
            body["voice"] = voice
        resp = await self._request(
            "POST",
            "/speech",
            json=body,
            timeout_message="Speech generation request timed out. Try shorter text.",
            default_error="Failed to generate speech",
        )
        return resp.content
