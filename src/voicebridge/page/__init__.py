"""
Host page platform.

Models the web primitives the host page uses to create and play voice
notes. The capture pipeline hooks these; it never owns them.
"""

from .dom import Document, Element
from .media import AudioBuffer, Blob, EncodingError
from .window import Window

__all__ = ["Window", "Document", "Element", "Blob", "AudioBuffer", "EncodingError"]
