"""
HTTP relay client.

Talks to the local relay server: multipart audio upload, JSON image and
text requests. The caller bounds total latency; connection failures are
retried once inside that bound.
"""

import base64
import mimetypes
import time
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..core.errors import RelayError, RelayTimeoutError
from .parsing import normalize_media_type
from .types import MediaTranslation, TextTranslation, TranslationRelay


# mimetypes maps these to .oga; the relay expects .ogg uploads
OGG_TYPES = ("audio/ogg", "audio/opus", "application/ogg")


def upload_filename(mime_type: str) -> str:
    audio_type = normalize_media_type(mime_type)
    if audio_type in OGG_TYPES:
        extension = ".ogg"
    else:
        extension = mimetypes.guess_extension(audio_type) or ".ogg"
    return f"voice_{int(time.time() * 1000)}{extension}"


def _processing_time(value: Any) -> Optional[float]:
    try:
        return float(str(value).rstrip("s"))
    except (TypeError, ValueError):
        return None


class HttpRelayClient(TranslationRelay):
    """
    Relay reached over HTTP (``/translate`` and ``/translate-text``).

    Images go to ``/translate-image``, which only relays with image support
    serve; a plain audio relay answers it with 404.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 35.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.5),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    )
    async def _post_once(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(path, **kwargs)

    async def _post(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._post_once(path, **kwargs)
        except httpx.TimeoutException as e:
            raise RelayTimeoutError(f"Relay request timed out: {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Relay request to {path} failed: {e}")
            raise RelayError(f"Relay unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        error = payload.get("error")
        if response.status_code >= 400 or error:
            raise RelayError(
                str(error) if error else f"HTTP {response.status_code}",
                status_code=response.status_code,
                safe=bool(error),
            )
        return payload

    async def translate_media(self, data: bytes, mime_type: str) -> MediaTranslation:
        mime_type = mime_type or "audio/ogg"
        if mime_type.startswith("image/"):
            logger.info(f"Sending image to relay ({len(data)} bytes)")
            payload = await self._post(
                "/translate-image",
                json={"image": base64.b64encode(data).decode("ascii"), "mimeType": mime_type},
            )
        else:
            filename = upload_filename(mime_type)
            logger.info(f"Sending audio to relay: {filename} ({len(data) / 1024:.2f} KB)")
            payload = await self._post("/translate", files={"audio": (filename, data, mime_type)})

        return MediaTranslation(
            detected_language=str(payload.get("detectedLanguage") or "Unknown"),
            original_text=str(payload.get("original") or ""),
            translated_text=str(payload.get("translation") or ""),
            processing_time=_processing_time(payload.get("processingTime")),
        )

    async def translate_text(
        self,
        text: str,
        target_language: str,
        context: Optional[List[Dict[str, str]]] = None,
    ) -> TextTranslation:
        body: Dict[str, Any] = {"text": text, "targetLanguage": target_language}
        if context:
            body["context"] = context
        payload = await self._post("/translate-text", json=body)
        return TextTranslation(
            translated_text=str(payload.get("translation") or ""),
            original_text=str(payload.get("original") or text),
            target_language=str(payload.get("targetLanguage") or target_language),
        )


__all__ = ["HttpRelayClient", "upload_filename"]
