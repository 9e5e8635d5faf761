"""
Error handling for the capture pipeline.

This module contains:
- CaptureErrorType enum for categorizing user-facing failures
- CaptureError dataclass carried by failed outcomes
- exceptions raised internally by the bridge, correlator and relay
- classify_error function mapping exceptions to CaptureError
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CaptureErrorType(str, Enum):
    """Types of capture and translation failures."""

    NO_CONTROL = "no_control"
    NO_IMAGE = "no_image"
    NO_AUDIO_DETECTED = "no_audio_detected"
    ABANDONED = "abandoned"
    BLOB_NOT_FOUND = "blob_not_found"
    REQUEST_TIMEOUT = "request_timeout"
    RELAY_ERROR = "relay_error"
    RELAY_TIMEOUT = "relay_timeout"
    TOO_MANY_REQUESTS = "too_many_requests"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    CaptureErrorType.NO_CONTROL: "Audio not found",
    CaptureErrorType.NO_IMAGE: "Image not found",
    CaptureErrorType.NO_AUDIO_DETECTED: "No audio detected",
    CaptureErrorType.ABANDONED: "Superseded by a newer request",
    CaptureErrorType.BLOB_NOT_FOUND: "Blob not found",
    CaptureErrorType.REQUEST_TIMEOUT: "Request timed out",
    CaptureErrorType.RELAY_ERROR: "Translation failed",
    CaptureErrorType.RELAY_TIMEOUT: "Translation timed out",
    CaptureErrorType.TOO_MANY_REQUESTS: "Too many requests, please wait",
    CaptureErrorType.UNKNOWN: "Something went wrong",
}

RETRYABLE_TYPES = {
    CaptureErrorType.NO_AUDIO_DETECTED,
    CaptureErrorType.BLOB_NOT_FOUND,
    CaptureErrorType.REQUEST_TIMEOUT,
    CaptureErrorType.RELAY_TIMEOUT,
    CaptureErrorType.TOO_MANY_REQUESTS,
}


@dataclass
class CaptureError:
    """Failure information handed to the UI layer."""

    error_type: CaptureErrorType
    message: str
    detail: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE_TYPES

    @property
    def user_visible(self) -> bool:
        return self.error_type != CaptureErrorType.ABANDONED

    @classmethod
    def of(cls, error_type: CaptureErrorType, detail: Optional[str] = None) -> "CaptureError":
        return cls(error_type, USER_MESSAGES[error_type], detail=detail)


class BlobRequestError(Exception):
    """The interceptor answered a byte request with an error."""

    pass


class BlobRequestTimeout(Exception):
    """The interceptor did not answer a byte request in time."""

    pass


class RelayError(Exception):
    """The relay failed or reported an error.

    ``safe`` marks messages that came from the relay's own error field and
    may be shown to the user verbatim.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, safe: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.safe = safe


class RelayTimeoutError(RelayError):
    """The relay exceeded its latency bound."""

    pass


class TooManyRequestsError(Exception):
    """The concurrency cap rejected a translate action."""

    pass


def classify_error(error: BaseException) -> CaptureError:
    """
    Classify an exception into a CaptureError.

    Args:
        error: The exception to classify.

    Returns:
        CaptureError with the user-facing type and message.
    """
    if isinstance(error, TooManyRequestsError):
        return CaptureError.of(CaptureErrorType.TOO_MANY_REQUESTS)
    if isinstance(error, BlobRequestTimeout):
        return CaptureError.of(CaptureErrorType.REQUEST_TIMEOUT, str(error))
    if isinstance(error, BlobRequestError):
        return CaptureError.of(CaptureErrorType.BLOB_NOT_FOUND, str(error))
    if isinstance(error, RelayTimeoutError) or isinstance(error, asyncio.TimeoutError):
        return CaptureError.of(CaptureErrorType.RELAY_TIMEOUT, str(error) or None)
    if isinstance(error, RelayError):
        if error.safe and str(error):
            return CaptureError(CaptureErrorType.RELAY_ERROR, str(error), detail=str(error))
        return CaptureError.of(CaptureErrorType.RELAY_ERROR, str(error))
    return CaptureError.of(CaptureErrorType.UNKNOWN, f"{type(error).__name__}: {error}")


__all__ = [
    "CaptureErrorType",
    "CaptureError",
    "BlobRequestError",
    "BlobRequestTimeout",
    "RelayError",
    "RelayTimeoutError",
    "TooManyRequestsError",
    "classify_error",
]
