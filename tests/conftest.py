"""Shared pytest fixtures for the voice relay test suite.

Provides a mock speech provider, a manually advanced clock, and PCM audio
samples used across unit and integration tests.
"""

import math
import struct
from unittest.mock import AsyncMock

import pytest

from src.core.config import get_settings

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep tests independent of the developer's environment and .env file."""
    for var in ("OPENAI_API_KEY", "VITE_OPENAI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    # No .env in an empty working directory
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_provider():
    """Create a mock speech provider.

    Returns:
        AsyncMock: Implements BaseSpeechProvider; transcribes to a fixed
        sentence and synthesizes fake MP3 bytes.
    """
    from src.services.provider import BaseSpeechProvider

    provider = AsyncMock(spec=BaseSpeechProvider)
    provider.transcribe.return_value = "Hello from the microphone."
    provider.synthesize.return_value = b"ID3fake-mp3-bytes"
    return provider


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(sample_rate):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)
