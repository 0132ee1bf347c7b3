"""
Abstract base class for speech providers.

Every provider (OpenAI, etc.) must implement this interface so that the
relay routes stay provider-agnostic. Provider failures are raised as
``ProviderError`` with a ``kind`` decided where the failure originates,
so callers never inspect error message text.
"""

from abc import ABC, abstractmethod
from enum import StrEnum


class ProviderErrorKind(StrEnum):
    """Structured category attached to every provider failure."""

    timeout = "timeout"  # Timed out or connection dropped
    authentication = "authentication"
    invalid_request = "invalid_request"  # Provider rejected the payload
    upstream = "upstream"


class ProviderError(Exception):
    """A classified provider failure.

    Args:
        kind: Failure category used by the routes to pick an HTTP mapping.
        message: Provider-side message, for logs only.
        status_code: Provider HTTP status when one was received.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BaseSpeechProvider(ABC):
    """Interface that every speech provider must implement."""

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str, filename: str) -> str:
        """Convert recorded audio into text.

        Args:
            audio: Encoded audio bytes as uploaded by the client.
            mime_type: Declared MIME type of ``audio``.
            filename: Original filename; providers use its extension to
                detect the container format.

        Returns:
            The transcript text (may be empty).

        Raises:
            ProviderError: On any provider-side failure.
        """

    @abstractmethod
    async def synthesize(self, text: str, voice: str) -> bytes:
        """Convert text into MP3 audio bytes.

        Args:
            text: Text to speak.
            voice: Provider voice identifier.

        Raises:
            ProviderError: On any provider-side failure.
        """
