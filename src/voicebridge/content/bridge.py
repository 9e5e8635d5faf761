"""
Content-script side of the message channel.

Tracks what the interceptor announces (captured blobs, playback starts)
and turns byte requests into awaitables bounded by a timeout.
"""

import asyncio
import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from loguru import logger
from pydantic import BaseModel

from ..core.cache import FifoIndex
from ..core.channel import MessageChannel
from ..core.config import Settings
from ..core.errors import BlobRequestError, BlobRequestTimeout
from ..core.messages import BlobCaptured, BytesResponse, GetBytesBySize, GetBytesByUrl, PlaybackBySize, PlaybackByUrl

DEFAULT_AUDIO_TYPE = "audio/ogg"


@dataclass
class BlobInfo:
    url: str
    mime_type: str
    size: int


@dataclass
class PlaybackObservation:
    """Last playback the interceptor reported; size and/or URL plus when."""

    size: Optional[int] = None
    url: Optional[str] = None
    timestamp: float = 0.0

    @property
    def usable(self) -> bool:
        return bool(self.size or self.url)


@dataclass
class PendingBlobRequest:
    request_id: str
    future: "asyncio.Future[BytesResponse]"


@dataclass
class AudioPayload:
    """Raw bytes recovered from the page, tagged with their media type."""

    data: bytes
    mime_type: str = DEFAULT_AUDIO_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def decode_payload(response: BytesResponse) -> AudioPayload:
    """Turn a successful bytes-response back into binary data."""
    try:
        data = base64.b64decode(response.encoded_bytes or "", validate=True)
    except (binascii.Error, ValueError) as e:
        raise BlobRequestError(f"Invalid payload encoding: {e}") from e
    return AudioPayload(data=data, mime_type=response.mime_type or DEFAULT_AUDIO_TYPE)


class InterceptorBridge:
    """Listens to the interceptor and issues byte requests to it."""

    def __init__(self, channel: MessageChannel, settings: Settings):
        self._channel = channel
        self._settings = settings
        self._pending: Dict[str, PendingBlobRequest] = {}
        self._captured_by_url: FifoIndex[str, BlobInfo] = FifoIndex(settings.registry_capacity, "captured url")
        self._captured_by_size: FifoIndex[int, BlobInfo] = FifoIndex(settings.registry_capacity, "captured size")
        self._last_playback = PlaybackObservation()
        self._channel.add_listener(self._on_message)

    def close(self) -> None:
        self._channel.remove_listener(self._on_message)
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.cancel()
        self._pending.clear()

    @property
    def last_playback(self) -> PlaybackObservation:
        return self._last_playback

    def reset_playback(self) -> None:
        self._last_playback = PlaybackObservation()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def captured_count(self) -> int:
        return len(self._captured_by_url)

    def captured(self, url: str) -> Optional[BlobInfo]:
        return self._captured_by_url.get(url)

    def _on_message(self, message: BaseModel) -> None:
        if isinstance(message, BlobCaptured):
            logger.debug(f"Audio blob captured: {message.size} bytes")
            info = BlobInfo(url=message.url, mime_type=message.mime_type, size=message.size)
            self._captured_by_url.put(info.url, info)
            self._captured_by_size.put(info.size, info)

        elif isinstance(message, PlaybackBySize):
            logger.debug(f"Audio playing (audio graph), size: {message.size}")
            self._last_playback.size = message.size
            self._last_playback.timestamp = message.timestamp
            # An exact size match names the blob, so the fetch can go by URL
            info = self._captured_by_size.get(message.size)
            self._last_playback.url = info.url if info is not None else None

        elif isinstance(message, PlaybackByUrl):
            logger.debug(f"Audio element play, url: {message.url[:50]}")
            self._last_playback.url = message.url
            self._last_playback.timestamp = message.timestamp
            info = self._captured_by_url.get(message.url)
            if info is not None:
                self._last_playback.size = info.size

        elif isinstance(message, BytesResponse):
            pending = self._pending.pop(message.request_id, None)
            if pending is None:
                logger.debug(f"Late or unknown bytes-response: {message.request_id}")
                return
            if not pending.future.done():
                pending.future.set_result(message)

    async def request_by_size(self, size: int) -> AudioPayload:
        return await self._request(lambda request_id: GetBytesBySize(size=size, request_id=request_id))

    async def request_by_url(self, url: str) -> AudioPayload:
        return await self._request(lambda request_id: GetBytesByUrl(url=url, request_id=request_id))

    async def _request(self, build: Callable[[str], BaseModel]) -> AudioPayload:
        """
        Post one byte request and wait for its response.

        Raises:
            BlobRequestTimeout: No response within blob_request_timeout.
            BlobRequestError: The interceptor reported an error or sent bad data.
        """
        request_id = f"req_{uuid.uuid4().hex}"
        loop = asyncio.get_running_loop()
        timeout = self._settings.blob_request_timeout
        future: asyncio.Future = loop.create_future()
        self._pending[request_id] = PendingBlobRequest(request_id, future)
        self._channel.post(build(request_id))

        try:
            response: BytesResponse = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise BlobRequestTimeout("Blob request timeout") from None
        finally:
            self._pending.pop(request_id, None)

        if response.error or response.encoded_bytes is None:
            raise BlobRequestError(response.error or "Empty blob response")
        payload = decode_payload(response)
        logger.info(f"Got blob data: {payload.size} bytes")
        return payload


__all__ = [
    "AudioPayload",
    "BlobInfo",
    "InterceptorBridge",
    "PendingBlobRequest",
    "PlaybackObservation",
    "decode_payload",
]
