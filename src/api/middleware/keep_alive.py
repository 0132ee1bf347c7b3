"""
Keep-alive and request logging middleware.

Provider calls can take tens of seconds, so every response advertises a
persistent connection with a two-minute idle timeout. The matching socket
timeout is applied by uvicorn (``timeout_keep_alive``) in ``src.cli``.
"""

import logging
from datetime import UTC, datetime

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class KeepAliveMiddleware(BaseHTTPMiddleware):
    """Log each request and attach keep-alive hints to its response."""

    def __init__(self, app: ASGIApp, timeout_seconds: int = 120) -> None:
        super().__init__(app)
        self._timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        logger.info("[%s] %s %s", datetime.now(UTC).isoformat(), request.method, request.url.path)
        response = await call_next(request)
        response.headers["Connection"] = "keep-alive"
        response.headers["Keep-Alive"] = f"timeout={self._timeout_seconds}"
        return response
