"""
Translate actions offered to the user.

Every action (voice note, image, text message, reply) runs end-to-end
under one shared concurrency cap and resolves to an ActionOutcome; no
failure escapes to the UI layer as an exception.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from loguru import logger

from ..core.config import Settings
from ..core.errors import CaptureError, CaptureErrorType, TooManyRequestsError, classify_error
from ..page.dom import Document, Element
from ..page.media import ObjectURLStore
from ..relay.types import MediaTranslation, TextTranslation, TranslationRelay
from .correlator import PlaybackCorrelator
from .discovery import conversation_context, find_message_image, message_text, sender_name

DEFAULT_IMAGE_TYPE = "image/jpeg"

T = TypeVar("T")


@dataclass
class ActionOutcome:
    """Result of one translate action as rendered by the UI."""

    success: bool
    result: Optional[Union[MediaTranslation, TextTranslation]] = None
    error: Optional[CaptureError] = None
    sender: Optional[str] = None


class TranslateActions:
    """Entry points behind the translate buttons."""

    def __init__(
        self,
        correlator: PlaybackCorrelator,
        relay: TranslationRelay,
        settings: Settings,
        document: Optional[Document] = None,
        url_store: Optional[ObjectURLStore] = None,
    ):
        self._correlator = correlator
        self._relay = relay
        self._settings = settings
        self._document = document
        self._url_store = url_store
        self._active = 0

    @property
    def active_count(self) -> int:
        return self._active

    @asynccontextmanager
    async def _slot(self):
        if self._active >= self._settings.max_concurrent_translations:
            raise TooManyRequestsError(f"{self._active} translations already in flight")
        self._active += 1
        try:
            yield
        finally:
            self._active -= 1

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, self._settings.relay_timeout)

    async def _run(self, label: str, body: Callable[[], Awaitable[ActionOutcome]]) -> ActionOutcome:
        try:
            async with self._slot():
                return await body()
        except Exception as e:
            error = classify_error(e)
            logger.warning(f"{label} translation failed: {error.error_type.value} - {error.detail or error.message}")
            return ActionOutcome(success=False, error=error)

    async def translate_audio(self, message: Element) -> ActionOutcome:
        """Capture the voice note behind ``message`` and translate it."""

        async def body() -> ActionOutcome:
            probe = await self._correlator.capture_audio(message)
            if not probe.success:
                if probe.error is not None and probe.error.user_visible:
                    logger.info(f"No audio blob available: {probe.error.message}")
                return ActionOutcome(success=False, error=probe.error)
            payload = probe.payload
            result = await self._bounded(self._relay.translate_media(payload.data, payload.mime_type))
            return ActionOutcome(success=True, result=result, sender=sender_name(message))

        return await self._run("Audio", body)

    async def translate_image(self, data: bytes, mime_type: str = DEFAULT_IMAGE_TYPE) -> ActionOutcome:
        async def body() -> ActionOutcome:
            result = await self._bounded(self._relay.translate_media(data, mime_type))
            return ActionOutcome(success=True, result=result)

        return await self._run("Image", body)

    async def translate_image_message(self, message: Element) -> ActionOutcome:
        """Translate the text shown in the image attached to ``message``."""

        async def body() -> ActionOutcome:
            image = find_message_image(message)
            if image is None:
                return ActionOutcome(success=False, error=CaptureError.of(CaptureErrorType.NO_IMAGE))
            src = image.get_attribute("src") or ""
            blob = self._url_store.resolve(src) if self._url_store is not None and src.startswith("blob:") else None
            if blob is None:
                logger.info(f"Image bytes unavailable: {src[:60]}")
                error = CaptureError.of(CaptureErrorType.NO_IMAGE, f"Unresolved image source: {src[:60]}")
                return ActionOutcome(success=False, error=error)
            data = await blob.array_buffer()
            result = await self._bounded(self._relay.translate_media(data, blob.type or DEFAULT_IMAGE_TYPE))
            return ActionOutcome(success=True, result=result, sender=sender_name(message))

        return await self._run("Image", body)

    async def translate_text(
        self,
        text: str,
        target_language: Optional[str] = None,
        context: Optional[List[Dict[str, str]]] = None,
    ) -> ActionOutcome:
        """Translate free text, e.g. a selection or a reply the user typed."""
        target = target_language or self._settings.target_language

        async def body() -> ActionOutcome:
            result = await self._bounded(self._relay.translate_text(text, target, context))
            return ActionOutcome(success=True, result=result)

        return await self._run("Text", body)

    async def translate_message(self, message: Element) -> ActionOutcome:
        """Translate a text message, passing the preceding conversation as context."""
        text = message_text(message)
        if not text:
            return ActionOutcome(success=False, error=CaptureError.of(CaptureErrorType.UNKNOWN, "Message has no text"))
        context = conversation_context(self._document, message) if self._document is not None else []
        outcome = await self.translate_text(text, context=context)
        outcome.sender = sender_name(message)
        return outcome

    async def translate_reply(self, text: str, target_language: str) -> ActionOutcome:
        """Translate the user's reply into the sender's language."""
        return await self.translate_text(text, target_language=target_language)


__all__ = ["ActionOutcome", "TranslateActions"]
