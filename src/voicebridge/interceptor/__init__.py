"""
Page-context interceptor package.

Provides the blob registry service and the hooks that feed it.
"""

import threading
from typing import Optional

from loguru import logger

from ..core.channel import MessageChannel
from ..core.config import Settings, get_settings
from ..page.window import Window
from .hooks import INSTALL_MARKER, PageInterceptor
from .registry import BlobRegistry, BufferFingerprint, CapturedBlob, DecodedBufferDescriptor

# Singleton management
_blob_registry: Optional[BlobRegistry] = None
_registry_lock = threading.RLock()


def get_blob_registry(settings: Optional[Settings] = None) -> BlobRegistry:
    """
    Get the process-wide BlobRegistry instance.

    The first call constructs it from ``settings`` (or the global settings);
    later calls return the same instance.
    """
    global _blob_registry
    with _registry_lock:
        if _blob_registry is None:
            _blob_registry = BlobRegistry(settings or get_settings())
        return _blob_registry


def install_interceptor(
    window: Window,
    channel: MessageChannel,
    settings: Optional[Settings] = None,
    registry: Optional[BlobRegistry] = None,
) -> PageInterceptor:
    """
    Hook ``window`` and return its interceptor.

    When the window is already hooked, ``channel`` is attached to the existing
    interceptor, which keeps its own registry, and that interceptor is returned.
    """
    settings = settings or get_settings()
    existing: Optional[PageInterceptor] = getattr(window, INSTALL_MARKER, None)
    if existing is not None:
        if registry is not None and registry is not existing.registry:
            logger.debug("Window already hooked; keeping its registry")
        existing.attach(channel)
        return existing

    interceptor = PageInterceptor(window, registry or get_blob_registry(settings), channel, settings)
    interceptor.install()
    return interceptor


__all__ = [
    "BlobRegistry",
    "BufferFingerprint",
    "CapturedBlob",
    "DecodedBufferDescriptor",
    "PageInterceptor",
    "get_blob_registry",
    "install_interceptor",
]
