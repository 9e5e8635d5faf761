"""
Media primitives of the host page.

Blobs, object URLs, audio contexts, buffer source nodes and audio elements
as the host page's own code uses them. The capture pipeline does not own
these; it interposes on them (see ``voicebridge.interceptor.hooks``).
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from loguru import logger


class EncodingError(Exception):
    """Raised when an encoded payload cannot be decoded."""

    pass


class InvalidStateError(Exception):
    pass


class Blob:
    """Immutable binary payload with a declared media type."""

    def __init__(self, data: bytes = b"", type: str = ""):
        self._data = bytes(data)
        self.type = type

    @property
    def size(self) -> int:
        return len(self._data)

    async def array_buffer(self) -> bytes:
        """Read the full payload; yields to the loop like a real file read."""
        await asyncio.sleep(0)
        return self._data

    def __repr__(self) -> str:
        return f"Blob(size={self.size}, type={self.type!r})"


class ObjectURLStore:
    """The page's ``URL`` object: mints and resolves ``blob:`` reference URLs."""

    def __init__(self, origin: str):
        self._origin = origin
        self._objects: Dict[str, Blob] = {}

    def create_object_url(self, obj: Blob) -> str:
        url = f"blob:{self._origin}/{uuid.uuid4()}"
        self._objects[url] = obj
        return url

    def revoke_object_url(self, url: str) -> None:
        self._objects.pop(url, None)

    def resolve(self, url: str) -> Optional[Blob]:
        return self._objects.get(url)


@dataclass(frozen=True)
class AudioBuffer:
    """Decoded PCM audio."""

    length: int
    sample_rate: int
    number_of_channels: int = 1

    @property
    def duration(self) -> float:
        return self.length / float(self.sample_rate)


Decoder = Callable[[bytes, int], AudioBuffer]


def decode_pcm16(data: bytes, sample_rate: int) -> AudioBuffer:
    """Default decoder: treats the payload as 16-bit mono PCM."""
    length = len(data) // 2
    if length == 0:
        raise EncodingError("Unable to decode audio data")
    return AudioBuffer(length=length, sample_rate=sample_rate)


class AudioBufferSourceNode:
    """Plays one decoded buffer through the audio graph."""

    def __init__(self, context: "BaseAudioContext"):
        self.context = context
        self.buffer: Optional[AudioBuffer] = None
        self.playing = False
        self._started = False

    def start(self, when: float = 0.0, offset: float = 0.0, duration: Optional[float] = None) -> None:
        if self._started:
            raise InvalidStateError("start() may only be called once")
        self._started = True
        self.playing = self.buffer is not None

    def stop(self, when: float = 0.0) -> None:
        if not self._started:
            raise InvalidStateError("stop() called before start()")
        self.playing = False


class BaseAudioContext:
    """Audio graph entry point. Window realms subclass it per constructor name."""

    source_node_type = AudioBufferSourceNode

    def __init__(self, sample_rate: int = 48000, decoder: Optional[Decoder] = None):
        self.sample_rate = sample_rate
        self._decoder = decoder or decode_pcm16

    def decode_audio_data(
        self,
        data: bytes,
        success_callback: Optional[Callable[[AudioBuffer], None]] = None,
        error_callback: Optional[Callable[[Exception], None]] = None,
    ) -> "asyncio.Future[AudioBuffer]":
        """
        Decode an encoded payload into an AudioBuffer.

        Always returns a future; the optional callbacks are invoked as well,
        before the future settles.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        payload = bytes(data)

        def _finish():
            try:
                buffer = self._decoder(payload, self.sample_rate)
            except Exception as e:
                error = e if isinstance(e, EncodingError) else EncodingError(str(e))
                if error_callback is not None:
                    error_callback(error)
                future.set_exception(error)
                if error_callback is not None:
                    # Reported through the callback already
                    future.exception()
                return
            if success_callback is not None:
                success_callback(buffer)
            future.set_result(buffer)

        loop.call_soon(_finish)
        return future

    def create_buffer_source(self) -> AudioBufferSourceNode:
        return self.source_node_type(self)


class HTMLAudioElement:
    """Simple media element playing a URL."""

    def __init__(self, src: str = ""):
        self.src = src
        self.paused = True

    def play(self) -> None:
        if not self.src:
            logger.trace("play() on an audio element without a source")
        self.paused = False

    def pause(self) -> None:
        self.paused = True


__all__ = [
    "Blob",
    "ObjectURLStore",
    "AudioBuffer",
    "AudioBufferSourceNode",
    "BaseAudioContext",
    "HTMLAudioElement",
    "EncodingError",
    "InvalidStateError",
    "decode_pcm16",
]
