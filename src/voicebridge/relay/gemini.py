"""
Direct relay to Google Generative AI.

Skips the local HTTP relay and sends captured media straight to a Gemini
model, asking for a small JSON object back.
"""

import time
from typing import Any, Dict, List, Optional

from loguru import logger

from ..core.errors import RelayError
from .parsing import normalize_media_type, parse_media_response
from .types import MediaTranslation, TextTranslation, TranslationRelay

MEDIA_INSTRUCTION = """Transcribe the speech in this recording (or the text in this image) and translate it into {target}.
Reply with JSON only:
{{"detected_language": "<language name in English>", "original_text": "<transcription>", "translated_text": "<translation>"}}
If the content is already in {target}, repeat it as the translation."""

TEXT_INSTRUCTION = "Translate the following text into {target}. Return only the translation."


def _classify_gemini_error(error: Exception) -> RelayError:
    text = str(error).lower()
    if "api key" in text or "api_key" in text:
        return RelayError("Invalid Gemini API key", safe=True)
    if "quota" in text or "resource_exhausted" in text:
        return RelayError("Gemini API quota exhausted", safe=True)
    return RelayError(f"Gemini request failed: {error}")


class GeminiRelay(TranslationRelay):
    """Relay backed by google-genai's async client."""

    def __init__(self, api_key: str, model: str, target_language: str, timeout: Optional[float] = None):
        try:
            from google import genai  # type: ignore
            from google.genai import types  # type: ignore
        except ImportError as exc:
            raise ImportError("google-genai is not installed") from exc

        if not api_key:
            raise ValueError("Gemini API key is required for the direct relay")

        # SDK expects milliseconds
        http_options = {"timeout": int(timeout * 1000)} if timeout else None
        self._client = genai.Client(api_key=api_key.strip(), http_options=http_options)
        self._types = types
        self._model = model
        self._target = target_language

    async def _generate(self, contents: List[Any]) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=self._types.GenerateContentConfig(temperature=0.2),
            )
        except Exception as e:
            logger.error(f"Gemini request failed: {e}")
            raise _classify_gemini_error(e) from e
        return self._extract_text(response)

    def _extract_text(self, response: Any) -> str:
        """Extract text from SDK response with safety filter handling."""
        try:
            return response.text or ""
        except (ValueError, AttributeError):
            if hasattr(response, "candidates") and response.candidates:
                for candidate in response.candidates:
                    if hasattr(candidate, "content") and hasattr(candidate.content, "parts"):
                        for part in candidate.content.parts:
                            if hasattr(part, "text") and part.text:
                                return part.text
            return ""

    async def translate_media(self, data: bytes, mime_type: str) -> MediaTranslation:
        started = time.monotonic()
        if not (mime_type or "").startswith("image/"):
            mime_type = normalize_media_type(mime_type)
        logger.info(f"Processing {len(data) / 1024:.2f} KB of {mime_type} with {self._model}")

        text = await self._generate(
            [
                self._types.Part.from_bytes(data=data, mime_type=mime_type),
                MEDIA_INSTRUCTION.format(target=self._target),
            ]
        )
        result = parse_media_response(text)
        if not result.original_text and not result.translated_text:
            raise RelayError("No speech or text detected", safe=True)

        result.processing_time = round(time.monotonic() - started, 2)
        logger.info(f"Detected language: {result.detected_language} ({result.processing_time}s)")
        return result

    async def translate_text(
        self,
        text: str,
        target_language: str,
        context: Optional[List[Dict[str, str]]] = None,
    ) -> TextTranslation:
        prompt = TEXT_INSTRUCTION.format(target=target_language)
        if context:
            lines = "\n".join(f"{item['sender']}: {item['text']}" for item in context)
            prompt += f"\nEarlier messages, for context only:\n{lines}"
        translated = await self._generate([f"{prompt}\n\nText: {text}"])
        return TextTranslation(translated_text=translated.strip(), original_text=text, target_language=target_language)


__all__ = ["GeminiRelay"]
