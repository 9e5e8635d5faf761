"""
Blob registry for the page-context interceptor.

Holds every audio-like blob the host page minted a reference URL for,
indexed by URL and by byte length, plus the decoded-buffer fingerprints
that relate a playing buffer back to its encoded size. Every index is a
bounded FIFO: the oldest-inserted entries go first once capacity is
exceeded, regardless of how recently they were looked up.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from ..core.cache import FifoIndex
from ..core.config import Settings
from ..page.media import AudioBuffer, Blob


@dataclass
class CapturedBlob:
    """One audio-like blob the host page created a reference URL for."""

    blob: Blob
    url: str
    mime_type: str
    size: int
    captured_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class BufferFingerprint:
    """Identity of one decode operation: (duration to 4 decimals, sample count)."""

    duration: float
    sample_count: int

    @classmethod
    def from_buffer(cls, buffer: AudioBuffer) -> "BufferFingerprint":
        return cls(round(buffer.duration, 4), int(buffer.length))

    def __str__(self) -> str:
        return f"{self.duration:.4f}_{self.sample_count}"


@dataclass
class DecodedBufferDescriptor:
    fingerprint: BufferFingerprint
    encoded_size: int


def is_audio_like(mime_type: str, markers: List[str]) -> bool:
    lowered = (mime_type or "").lower()
    return any(marker.lower() in lowered for marker in markers)


class BlobRegistry:
    """
    Registry service owned by the interceptor.

    Only the interceptor mutates it; the content script reaches it through
    byte requests on the message channel.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        capacity = settings.registry_capacity
        self._by_url: FifoIndex[str, CapturedBlob] = FifoIndex(capacity, "url")
        self._by_size: FifoIndex[int, CapturedBlob] = FifoIndex(capacity, "size")
        self._decoded: FifoIndex[BufferFingerprint, DecodedBufferDescriptor] = FifoIndex(
            capacity, "fingerprint"
        )
        self._lock = threading.RLock()

    def should_capture(self, blob: Any) -> bool:
        """Size above the threshold and an audio-like declared type."""
        size = getattr(blob, "size", 0) or 0
        if size <= self._settings.min_blob_size:
            return False
        return is_audio_like(getattr(blob, "type", "") or "", self._settings.audio_type_markers)

    def capture(self, blob: Blob, url: str) -> Optional[CapturedBlob]:
        """Register ``blob`` under ``url`` and its size if it qualifies."""
        if not self.should_capture(blob):
            return None
        entry = CapturedBlob(blob=blob, url=url, mime_type=blob.type or "unknown", size=blob.size)
        with self._lock:
            self._by_url.put(url, entry)
            self._by_size.put(entry.size, entry)
        logger.debug(f"Captured audio blob: {entry.size} bytes ({entry.mime_type})")
        return entry

    def record_decoded(self, buffer: AudioBuffer, encoded_size: int) -> DecodedBufferDescriptor:
        """Map the decoded buffer's fingerprint to its encoded size; last write wins."""
        descriptor = DecodedBufferDescriptor(BufferFingerprint.from_buffer(buffer), encoded_size)
        with self._lock:
            self._decoded.put(descriptor.fingerprint, descriptor)
        logger.debug(f"Decoded {encoded_size} bytes -> {descriptor.fingerprint}")
        return descriptor

    def encoded_size_for(self, buffer: AudioBuffer) -> Optional[int]:
        with self._lock:
            descriptor = self._decoded.get(BufferFingerprint.from_buffer(buffer))
        return descriptor.encoded_size if descriptor else None

    def find_by_url(self, url: str) -> Optional[CapturedBlob]:
        with self._lock:
            return self._by_url.get(url)

    def find_by_size(self, size: int) -> Optional[CapturedBlob]:
        """Exact size first, then the oldest entry within the size tolerance."""
        tolerance = self._settings.size_tolerance
        with self._lock:
            entry = self._by_size.get(size)
            if entry is not None:
                return entry
            for captured_size, candidate in self._by_size.items():
                if abs(captured_size - size) <= tolerance:
                    logger.debug(f"Fuzzy size match: requested {size}, found {captured_size}")
                    return candidate
        return None

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "by_url": len(self._by_url),
                "by_size": len(self._by_size),
                "decoded": len(self._decoded),
                "capacity": self._by_url.capacity,
            }

    def clear(self) -> None:
        with self._lock:
            self._by_url.clear()
            self._by_size.clear()
            self._decoded.clear()
        logger.info("Blob registry cleared")


__all__ = [
    "CapturedBlob",
    "BufferFingerprint",
    "DecodedBufferDescriptor",
    "BlobRegistry",
    "is_audio_like",
]
