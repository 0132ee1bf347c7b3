"""
Voice relay exception hierarchy.

All server-side exceptions inherit from RelayError, enabling centralized
error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(
        self,
        detail: str = "Something went wrong!",
        code: str = "RELAY_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class InvalidInputError(RelayError):
    """Raised when a request payload is missing, malformed, or oversized."""

    def __init__(self, detail: str, code: str = "INVALID_INPUT") -> None:
        super().__init__(detail=detail, code=code, status_code=400)


class MissingAudioError(InvalidInputError):
    """Raised when ``/transcribe`` receives no ``audio`` file part."""

    def __init__(self) -> None:
        super().__init__(detail="No audio file provided", code="NO_AUDIO")


class AudioTooLargeError(InvalidInputError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, limit_bytes: int) -> None:
        limit_mb = limit_bytes // (1024 * 1024)
        super().__init__(
            detail=f"Audio file too large. Maximum size is {limit_mb} MB.",
            code="AUDIO_TOO_LARGE",
        )


class InvalidAudioFormatError(InvalidInputError):
    """Raised when the provider rejects the uploaded audio."""

    def __init__(self) -> None:
        super().__init__(
            detail="Invalid audio format. Please ensure you're sending a supported "
            "audio format (MP3, WAV, etc.).",
            code="INVALID_AUDIO_FORMAT",
        )


class MissingTextError(InvalidInputError):
    """Raised when ``/speech`` receives blank text."""

    def __init__(self) -> None:
        super().__init__(detail="No text provided", code="NO_TEXT")


class TextTooLongError(InvalidInputError):
    """Raised when ``/speech`` text exceeds the length limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            detail=f"Text too long. Maximum length is {limit} characters.",
            code="TEXT_TOO_LONG",
        )


class RateLimitedError(RelayError):
    """Raised when a client calls again inside the rate-gate window."""

    def __init__(self) -> None:
        super().__init__(
            detail="Too many requests. Please wait a moment.",
            code="RATE_LIMITED",
            status_code=429,
        )


class UpstreamAuthError(RelayError):
    """Raised when the provider rejects the configured credentials."""

    def __init__(self) -> None:
        super().__init__(
            detail="Authentication error. Please check your API key.",
            code="UPSTREAM_AUTH_ERROR",
            status_code=401,
        )


class UpstreamTimeoutError(RelayError):
    """Raised when the provider call timed out or the connection dropped."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail=detail, code="UPSTREAM_TIMEOUT", status_code=500)


class UpstreamError(RelayError):
    """Raised for any other provider failure."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail=detail, code="UPSTREAM_ERROR", status_code=500)


class ConfigurationError(RelayError):
    """Raised when the relay is missing required configuration."""

    def __init__(self, detail: str = "Provider API key is not configured") -> None:
        super().__init__(detail=detail, code="CONFIGURATION_ERROR", status_code=500)
