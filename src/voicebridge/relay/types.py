"""
Relay contract consumed by the content script.

Media in (encoded bytes plus declared type), structured result out; text
plus a target language in, translated text out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class MediaTranslation:
    """Result of transcribing/reading and translating one audio or image payload."""

    detected_language: str
    original_text: str
    translated_text: str
    processing_time: Optional[float] = None


@dataclass
class TextTranslation:
    translated_text: str
    original_text: str = ""
    target_language: str = ""


class TranslationRelay(ABC):
    """Anything that can turn captured media or text into translations."""

    @abstractmethod
    async def translate_media(self, data: bytes, mime_type: str) -> MediaTranslation:
        """Transcribe (audio) or extract text (image) and translate it."""

    @abstractmethod
    async def translate_text(
        self,
        text: str,
        target_language: str,
        context: Optional[List[Dict[str, str]]] = None,
    ) -> TextTranslation:
        """Translate ``text`` into ``target_language`` (ISO code)."""

    async def aclose(self) -> None:
        pass


__all__ = ["MediaTranslation", "TextTranslation", "TranslationRelay"]
