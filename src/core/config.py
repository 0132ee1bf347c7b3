"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Voice relay settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        openai_api_key: Provider secret. The relay refuses to start without it.
        speech_provider: Which provider backend handles audio ("openai").
        rate_limit_window_seconds: Minimum gap between accepted requests per key.
        relay_base_url: Where the client-side gateway finds the relay.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
        populate_by_name=True,
    )

    # --- Provider ---
    speech_provider: str = "openai"
    # Also accepts the frontend-style variable name used by older .env files
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "vite_openai_api_key"),
    )
    transcription_model: str = "whisper-1"
    transcription_language: str = "en"  # Language hint sent with every upload
    speech_model: str = "tts-1"
    default_voice: str = "alloy"
    provider_timeout: float = 30.0  # Seconds, applied by the SDK per attempt
    provider_max_retries: int = 2

    # --- Request limits ---
    max_upload_bytes: int = 10 * 1024 * 1024
    max_text_length: int = 4000
    rate_limit_window_seconds: float = 1.0

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the relay server
    app_port: int = 3000
    keep_alive_timeout: int = 120  # Socket idle timeout for slow provider calls
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    log_level: str = "INFO"  # Python logging level

    # --- Client ---
    relay_base_url: str = "http://localhost:3000"
    client_timeout: float = 30.0
    max_recording_seconds: int = 10


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
