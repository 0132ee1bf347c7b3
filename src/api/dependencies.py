"""
FastAPI dependencies shared by the relay routes.

``get_provider`` builds the configured speech provider once per process;
tests replace it through ``app.dependency_overrides``. ``enforce_rate_limit``
applies the per-IP rate gate stored on ``app.state``.
"""

import logging
from functools import lru_cache

from fastapi import Request

from src.core.config import get_settings
from src.core.exceptions import ConfigurationError, RateLimitedError
from src.core.rate_limit import RateLimiter
from src.services.provider import BaseSpeechProvider, create_provider

logger = logging.getLogger(__name__)


@lru_cache
def get_provider() -> BaseSpeechProvider:
    """Return the cached provider configured in Settings."""
    settings = get_settings()
    if not settings.openai_api_key:
        raise ConfigurationError()
    return create_provider(settings.speech_provider, settings=settings)


def client_key(request: Request) -> str:
    """Identify the caller by socket peer address."""
    if request.client is None:
        return "unknown"
    return request.client.host


async def enforce_rate_limit(request: Request) -> None:
    """Reject the request with 429 when its IP called less than a window ago."""
    limiter: RateLimiter = request.app.state.rate_limiter
    key = client_key(request)
    if not limiter.check(key):
        logger.info("Rate limited %s on %s", key, request.url.path)
        raise RateLimitedError()
