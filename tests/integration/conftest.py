"""Integration test fixtures for the voice relay.

Runs the real application in-process through ``httpx.ASGITransport`` with
the provider replaced by a mock and the rate gate driven by a fake clock.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.dependencies import get_provider
from src.core.rate_limit import RateLimiter


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(window=1.0, clock=clock)


@pytest.fixture
def app(rate_limiter, mock_provider):
    """Create a fresh FastAPI application with the mock provider injected."""
    application = create_app(rate_limiter=rate_limiter)
    application.dependency_overrides[get_provider] = lambda: mock_provider
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
