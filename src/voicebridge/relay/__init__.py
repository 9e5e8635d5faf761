"""
Relay package for VoiceBridge.

Provides the relay contract and its two implementations: the local HTTP
relay client and the direct Gemini relay.
"""

from typing import Optional

from loguru import logger

from ..core.config import Settings, get_settings
from .http_client import HttpRelayClient
from .types import MediaTranslation, TextTranslation, TranslationRelay


def create_relay(settings: Optional[Settings] = None) -> TranslationRelay:
    """Build the relay selected by ``settings.relay_backend``."""
    settings = settings or get_settings()
    if settings.relay_backend == "gemini":
        from .gemini import GeminiRelay

        logger.info(f"Using direct Gemini relay ({settings.gemini_model})")
        return GeminiRelay(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_model,
            target_language=settings.target_language,
            timeout=settings.relay_timeout,
        )
    logger.info(f"Using HTTP relay at {settings.relay_url}")
    return HttpRelayClient(settings.relay_url, timeout=settings.relay_timeout)


__all__ = [
    "HttpRelayClient",
    "MediaTranslation",
    "TextTranslation",
    "TranslationRelay",
    "create_relay",
]
