"""
Provider module - speech transcription / synthesis abstraction layer.

Factory function for creating provider instances based on configuration.
"""

from .base import BaseSpeechProvider, ProviderError, ProviderErrorKind

__all__ = ["BaseSpeechProvider", "ProviderError", "ProviderErrorKind", "create_provider"]


def create_provider(provider: str, **kwargs) -> BaseSpeechProvider:
    """
    Factory function to create a speech provider instance.

    Args:
        provider: Provider name ("openai")
        **kwargs: Provider-specific configuration

    Returns:
        BaseSpeechProvider implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "openai":
        from .openai import OpenAISpeechProvider

        return OpenAISpeechProvider(**kwargs)
    else:
        raise ValueError(f"Unknown speech provider: {provider}")
