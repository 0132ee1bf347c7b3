"""
FastAPI application factory.

``create_app()`` assembles the relay with CORS, keep-alive headers, error
handlers, the rate gate, routers, and the health endpoint. The
module-level ``app`` instance allows ``uvicorn src.api.app:app --reload``.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import register_error_handlers
from src.api.middleware.keep_alive import KeepAliveMiddleware
from src.api.routes import speech, transcribe
from src.core.config import get_settings
from src.core.models import HealthResponse
from src.core.rate_limit import RateLimiter


def create_app(rate_limiter: RateLimiter | None = None) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        rate_limiter: Rate gate shared by the POST routes. Defaults to a
            limiter using ``settings.rate_limit_window_seconds``.
    """
    settings = get_settings()

    app = FastAPI(
        title="Voice Relay",
        description="Relay between a voice client and a speech transcription "
        "and synthesis provider.",
        version="0.1.0",
    )
    app.state.rate_limiter = rate_limiter or RateLimiter(
        window=settings.rate_limit_window_seconds
    )

    # -- Middleware (last added runs first) --
    app.add_middleware(KeepAliveMiddleware, timeout_seconds=settings.keep_alive_timeout)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Length", "Content-Type"],
        max_age=600,
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (never rate limited) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse()

    # -- Relay routes --
    app.include_router(transcribe.router)
    app.include_router(speech.router)

    return app


app = create_app()
