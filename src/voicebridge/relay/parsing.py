"""Model output parsing and media type helpers for the relays."""

import json
import re

from loguru import logger

from .types import MediaTranslation

_FENCE = re.compile(r"```(?:json)?\s*\n?")


def normalize_media_type(mime_type: str) -> str:
    """WhatsApp labels voice notes in several ways; the model wants an audio type."""
    base = (mime_type or "").split(";")[0].strip().lower()
    if base in ("", "unknown", "application/octet-stream", "application/ogg"):
        return "audio/ogg"
    return base


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text or "").replace("```", "").strip()


def parse_media_response(text: str) -> MediaTranslation:
    """
    Parse the model's JSON answer.

    Unparsable output is kept as both original and translation with an
    unknown language rather than discarded.
    """
    try:
        data = json.loads(strip_code_fences(text))
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
    except ValueError as e:
        logger.warning(f"Failed to parse model response as JSON: {e}")
        return MediaTranslation(detected_language="Unknown", original_text=text, translated_text=text)

    return MediaTranslation(
        detected_language=str(data.get("detected_language") or "Unknown"),
        original_text=str(data.get("original_text") or ""),
        translated_text=str(data.get("translated_text") or data.get("translation") or ""),
    )


__all__ = ["normalize_media_type", "strip_code_fences", "parse_media_response"]
