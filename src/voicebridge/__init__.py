"""
VoiceBridge package.

Captures voice messages from a chat web page, recovers their encoded
audio through an interception layer on the page's media primitives, and
sends them to a multimodal model for transcription and translation.
"""

from .core.config import Settings, get_settings
from .session import CaptureSession

__all__ = ["CaptureSession", "Settings", "get_settings"]
