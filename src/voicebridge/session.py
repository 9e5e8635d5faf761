"""
Per-page wiring of the capture pipeline.

A CaptureSession corresponds to one page load: one channel, the
interceptor hooked into the page's window, and the content script
listening on the other end.
"""

from typing import Optional

from loguru import logger

from .content.actions import TranslateActions
from .content.bridge import InterceptorBridge
from .content.correlator import PlaybackCorrelator
from .core.channel import MessageChannel
from .core.config import Settings, get_settings
from .interceptor import BlobRegistry, PageInterceptor, install_interceptor
from .page.window import Window
from .relay import create_relay
from .relay.types import TranslationRelay


class CaptureSession:
    """Interceptor and content script attached to one window."""

    def __init__(
        self,
        window: Window,
        relay: Optional[TranslationRelay] = None,
        settings: Optional[Settings] = None,
        registry: Optional[BlobRegistry] = None,
    ):
        self.settings = settings or get_settings()
        self.window = window
        self.channel = MessageChannel()
        self.interceptor: PageInterceptor = install_interceptor(
            window, self.channel, self.settings, registry=registry or BlobRegistry(self.settings)
        )
        self.bridge = InterceptorBridge(self.channel, self.settings)
        self.correlator = PlaybackCorrelator(window.document, self.bridge, self.settings)
        self.relay = relay or create_relay(self.settings)
        self.actions = TranslateActions(
            self.correlator, self.relay, self.settings, document=window.document, url_store=window.URL
        )
        logger.info(f"Capture session attached to {window.origin}")

    async def close(self) -> None:
        await self.interceptor.drain()
        self.bridge.close()
        self.interceptor.detach(self.channel)
        await self.relay.aclose()
        logger.info("Capture session closed")

    async def __aenter__(self) -> "CaptureSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["CaptureSession"]
