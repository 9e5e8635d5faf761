"""
Interposition layer on the host page's media primitives.

Reassigns URL.create_object_url, decode_audio_data on every audio-context
constructor, AudioBufferSourceNode.start and HTMLAudioElement.play so the
registry sees every audio blob the page creates and every playback it
starts. The originals are always called and their results returned
unchanged; the interceptor only observes. It also answers byte requests
from the content script.
"""

import asyncio
import base64
import time
from functools import partial, wraps
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from loguru import logger

from ..core.channel import MessageChannel
from ..core.config import Settings
from ..core.messages import (
    BlobCaptured,
    BytesResponse,
    GetBytesBySize,
    GetBytesByUrl,
    PlaybackBySize,
    PlaybackByUrl,
)
from ..page.media import AudioBuffer
from ..page.window import Window
from .registry import BlobRegistry, CapturedBlob

WRAPPED_MARKER = "_voicebridge_wrapped"
INSTALL_MARKER = "_voicebridge_interceptor"


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class PageInterceptor:
    """Hooks one window's media primitives and serves byte requests."""

    def __init__(self, window: Window, registry: BlobRegistry, channel: MessageChannel, settings: Settings):
        self._window = window
        self._registry = registry
        self._channels: List[Tuple[MessageChannel, Callable]] = [(channel, partial(self._on_message, channel))]
        self._settings = settings
        self._restore: List[Callable[[], None]] = []
        self._tasks: Set[asyncio.Task] = set()
        self._installed = False

    @property
    def registry(self) -> BlobRegistry:
        return self._registry

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def attach(self, channel: MessageChannel) -> None:
        """Also announce to, and serve byte requests from, ``channel``."""
        if any(attached is channel for attached, _ in self._channels):
            return
        listener = partial(self._on_message, channel)
        self._channels.append((channel, listener))
        if self._installed:
            channel.add_listener(listener)
        logger.info(f"Channel attached to interceptor ({len(self._channels)} attached)")

    def detach(self, channel: MessageChannel) -> None:
        """Stop using ``channel``. Detaching the last channel restores the page."""
        for entry in list(self._channels):
            attached, listener = entry
            if attached is channel:
                self._channels.remove(entry)
                attached.remove_listener(listener)
        if not self._channels:
            self.uninstall()

    def _broadcast(self, message) -> None:
        for channel, _ in self._channels:
            channel.post(message)

    def install(self) -> bool:
        """Install all hooks. Returns False when the window is already hooked."""
        if getattr(self._window, INSTALL_MARKER, None) is not None:
            logger.debug("Interceptor already installed on this window")
            return False

        self._hook_object_urls()
        self._hook_decoders()
        self._hook_source_start()
        self._hook_media_play()
        for channel, listener in self._channels:
            channel.add_listener(listener)

        setattr(self._window, INSTALL_MARKER, self)
        self._installed = True
        logger.info("Interceptors ready: create_object_url, decode_audio_data, start(), play()")
        return True

    def uninstall(self) -> None:
        """Restore every patched primitive and stop serving requests."""
        if not self._installed:
            return
        for undo in reversed(self._restore):
            undo()
        self._restore.clear()
        for channel, listener in self._channels:
            channel.remove_listener(listener)
        delattr(self._window, INSTALL_MARKER)
        self._installed = False
        logger.info("Interceptors removed")

    # ==================== BLOB INTERCEPTION ====================

    def _hook_object_urls(self) -> None:
        store = self._window.URL
        original = store.create_object_url

        def create_object_url(obj):
            url = original(obj)
            try:
                self._on_object_url(obj, url)
            except Exception as e:
                logger.warning(f"Blob inspection failed: {e}")
            return url

        store.create_object_url = create_object_url
        self._restore.append(lambda: store.__dict__.pop("create_object_url", None))

    def _on_object_url(self, obj, url: str) -> None:
        entry = self._registry.capture(obj, url)
        if entry is None:
            return
        logger.info(f"Audio blob: {entry.size} bytes")
        self._broadcast(BlobCaptured(url=entry.url, mime_type=entry.mime_type, size=entry.size))

    # ==================== AUDIO CONTEXT INTERCEPTION ====================

    def _hook_decoders(self) -> None:
        constructors = self._window.audio_context_types(self._settings.audio_context_constructors)
        for name, ctor in constructors.items():
            original = ctor.decode_audio_data
            if getattr(original, WRAPPED_MARKER, False):
                # Inherited from an already wrapped constructor
                continue
            self._patch(ctor, "decode_audio_data", self._wrap_decode(original, name))

    def _wrap_decode(self, original: Callable, context_name: str) -> Callable:
        """One wrapper for both calling conventions; both record through _record_decoded."""
        interceptor = self

        @wraps(original)
        def decode_audio_data(ctx, data, success_callback=None, error_callback=None):
            input_size = len(data)
            logger.trace(f"{context_name}.decode_audio_data called, size: {input_size}")

            if success_callback is None and error_callback is None:
                return asyncio.ensure_future(interceptor._record_when_decoded(original(ctx, data), input_size))

            def on_success(buffer: AudioBuffer):
                interceptor._record_decoded(buffer, input_size)
                if success_callback is not None:
                    success_callback(buffer)

            return original(ctx, data, on_success, error_callback)

        setattr(decode_audio_data, WRAPPED_MARKER, True)
        return decode_audio_data

    async def _record_when_decoded(self, pending: Awaitable[AudioBuffer], input_size: int) -> AudioBuffer:
        buffer = await pending
        self._record_decoded(buffer, input_size)
        return buffer

    def _record_decoded(self, buffer: AudioBuffer, input_size: int) -> None:
        try:
            self._registry.record_decoded(buffer, input_size)
        except Exception as e:
            logger.warning(f"Failed to fingerprint decoded buffer: {e}")

    # ==================== AUDIO PLAYBACK INTERCEPTION ====================

    def _hook_source_start(self) -> None:
        node_type = self._window.AudioBufferSourceNode
        original = node_type.start

        @wraps(original)
        def start(node, *args, **kwargs):
            try:
                self._on_source_start(node)
            except Exception as e:
                logger.warning(f"Playback inspection failed: {e}")
            return original(node, *args, **kwargs)

        self._patch(node_type, "start", start)

    def _on_source_start(self, node) -> None:
        if node.buffer is None:
            return
        size = self._registry.encoded_size_for(node.buffer)
        if not size:
            logger.debug("Playing unknown audio buffer")
            return
        logger.info(f"Playing audio, size: {size}")
        self._broadcast(PlaybackBySize(size=size, timestamp=time.time()))

    # ==================== MEDIA ELEMENT INTERCEPTION ====================

    def _hook_media_play(self) -> None:
        element_type = self._window.HTMLAudioElement
        original = element_type.play

        @wraps(original)
        def play(element, *args, **kwargs):
            try:
                self._on_media_play(element)
            except Exception as e:
                logger.warning(f"Media element inspection failed: {e}")
            return original(element, *args, **kwargs)

        self._patch(element_type, "play", play)

    def _on_media_play(self, element) -> None:
        src = element.src or ""
        logger.debug(f"HTMLAudioElement.play() src: {src[:60]}")
        if src.startswith("blob:"):
            self._broadcast(PlaybackByUrl(url=src, timestamp=time.time()))

    def _patch(self, owner: type, attr: str, replacement: Callable) -> None:
        had_own = attr in owner.__dict__
        previous = owner.__dict__.get(attr)
        setattr(owner, attr, replacement)

        def undo():
            if had_own:
                setattr(owner, attr, previous)
            else:
                delattr(owner, attr)

        self._restore.append(undo)

    # ==================== BYTE REQUESTS ====================

    def _on_message(self, channel: MessageChannel, message) -> None:
        """Serve byte requests; the response goes back on the channel the request came from."""
        if isinstance(message, GetBytesBySize):
            logger.debug(f"Blob requested by size: {message.size}")
            lookup = partial(self._registry.find_by_size, message.size)
            self._spawn(self._serve(channel, message.request_id, lookup, f"size {message.size}"))
        elif isinstance(message, GetBytesByUrl):
            logger.debug(f"Blob requested by URL: {message.url[:60]}")
            lookup = partial(self._registry.find_by_url, message.url)
            self._spawn(self._serve(channel, message.request_id, lookup, f"url {message.url}"))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _serve(
        self,
        channel: MessageChannel,
        request_id: str,
        lookup: Callable[[], Optional[CapturedBlob]],
        label: str,
    ) -> None:
        """Answer one byte request. Exactly one response is posted per request."""
        try:
            entry = lookup()
            if entry is None:
                response = BytesResponse(request_id=request_id, error=f"Not found: {label}")
            else:
                data = await entry.blob.array_buffer()
                loop = asyncio.get_running_loop()
                encoded = await loop.run_in_executor(None, encode_base64, data)
                response = BytesResponse(
                    request_id=request_id,
                    size=entry.size,
                    encoded_bytes=encoded,
                    mime_type=entry.mime_type,
                )
        except Exception as e:
            logger.error(f"Failed to serve blob request {request_id}: {e}")
            response = BytesResponse(request_id=request_id, error=f"Encoding failed: {e}")
        channel.post(response)

    async def drain(self) -> None:
        """Wait for in-flight byte requests to be answered."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["PageInterceptor", "encode_base64", "WRAPPED_MARKER", "INSTALL_MARKER"]
