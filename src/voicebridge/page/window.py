"""
Window realm of the host page.

Each Window gets its own subclasses of the media primitives, the way each
browser realm has its own constructors, so patching one page's primitives
never leaks into another page.
"""

from typing import Dict, List, Type

from .dom import Document
from .media import AudioBufferSourceNode, BaseAudioContext, HTMLAudioElement, ObjectURLStore


class Window:
    """Globals of one page: URL store, audio constructors and document."""

    def __init__(self, origin: str = "https://web.whatsapp.com"):
        self.origin = origin
        self.URL = ObjectURLStore(origin)
        self.document = Document()

        self.AudioBufferSourceNode: Type[AudioBufferSourceNode] = type(
            "AudioBufferSourceNode", (AudioBufferSourceNode,), {}
        )
        self.BaseAudioContext: Type[BaseAudioContext] = type(
            "BaseAudioContext", (BaseAudioContext,), {"source_node_type": self.AudioBufferSourceNode}
        )
        self.AudioContext = type("AudioContext", (self.BaseAudioContext,), {})
        self.webkitAudioContext = type("webkitAudioContext", (self.BaseAudioContext,), {})
        self.OfflineAudioContext = type("OfflineAudioContext", (self.BaseAudioContext,), {})
        self.HTMLAudioElement: Type[HTMLAudioElement] = type("HTMLAudioElement", (HTMLAudioElement,), {})

    def audio_context_types(self, names: List[str]) -> Dict[str, type]:
        """Return the audio-context constructors present on this window, by name."""
        found = {}
        for name in names:
            ctor = getattr(self, name, None)
            if isinstance(ctor, type) and hasattr(ctor, "decode_audio_data"):
                found[name] = ctor
        return found


__all__ = ["Window"]
