"""
Core package for VoiceBridge: configuration, logging, errors and the
cross-context message channel.
"""

from .channel import MessageChannel
from .config import Settings, get_settings
from .errors import CaptureError, CaptureErrorType, classify_error

__all__ = [
    "MessageChannel",
    "Settings",
    "get_settings",
    "CaptureError",
    "CaptureErrorType",
    "classify_error",
]
