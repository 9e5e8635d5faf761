"""
Cross-context message types.

Every message posted on the channel is one of the models below, serialized
to JSON text. The ``type`` field discriminates them; anything else seen on
the channel is host-page chatter and is ignored.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

PREFIX = "voicebridge:"

BLOB_CAPTURED = PREFIX + "blob-captured"
PLAYBACK_SIZE = PREFIX + "playback-size"
PLAYBACK_URL = PREFIX + "playback-url"
GET_BYTES_BY_SIZE = PREFIX + "get-bytes-by-size"
GET_BYTES_BY_URL = PREFIX + "get-bytes-by-url"
BYTES_RESPONSE = PREFIX + "bytes-response"


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class BlobCaptured(_Message):
    """Announces a new candidate blob. Never carries the bytes."""

    type: Literal["voicebridge:blob-captured"] = BLOB_CAPTURED
    url: str
    mime_type: str
    size: int


class PlaybackBySize(_Message):
    """The low-level audio graph started playing a buffer decoded from ``size`` bytes."""

    type: Literal["voicebridge:playback-size"] = PLAYBACK_SIZE
    size: int
    timestamp: float


class PlaybackByUrl(_Message):
    """A media element started playing a blob reference URL."""

    type: Literal["voicebridge:playback-url"] = PLAYBACK_URL
    url: str
    timestamp: float


class GetBytesBySize(_Message):
    type: Literal["voicebridge:get-bytes-by-size"] = GET_BYTES_BY_SIZE
    size: int
    request_id: str


class GetBytesByUrl(_Message):
    type: Literal["voicebridge:get-bytes-by-url"] = GET_BYTES_BY_URL
    url: str
    request_id: str


class BytesResponse(_Message):
    """Fulfils or fails one byte request; ``error`` is set on failure."""

    type: Literal["voicebridge:bytes-response"] = BYTES_RESPONSE
    request_id: str
    size: Optional[int] = None
    encoded_bytes: Optional[str] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.encoded_bytes is not None


ChannelMessage = Annotated[
    Union[BlobCaptured, PlaybackBySize, PlaybackByUrl, GetBytesBySize, GetBytesByUrl, BytesResponse],
    Field(discriminator="type"),
]

_adapter: TypeAdapter = TypeAdapter(ChannelMessage)


def parse_message(raw: Dict[str, Any]) -> Optional[_Message]:
    """Validate a raw channel payload; return None for foreign or malformed messages."""
    if not isinstance(raw, dict) or not str(raw.get("type", "")).startswith(PREFIX):
        return None
    try:
        return _adapter.validate_python(raw)
    except ValidationError:
        return None


__all__ = [
    "BlobCaptured",
    "PlaybackBySize",
    "PlaybackByUrl",
    "GetBytesBySize",
    "GetBytesByUrl",
    "BytesResponse",
    "ChannelMessage",
    "parse_message",
]
