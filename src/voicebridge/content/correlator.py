"""
Playback correlator.

Works out which captured blob belongs to an on-screen voice message by
clicking the message's own play control and waiting for the interceptor
to report what the page started playing ("probe by simulated play").
"""

import asyncio
import itertools
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from ..core.config import Settings
from ..core.errors import BlobRequestError, BlobRequestTimeout, CaptureError, CaptureErrorType, classify_error
from ..page.dom import Element
from .bridge import AudioPayload, InterceptorBridge
from .discovery import find_pause_control, find_play_control


@dataclass(frozen=True)
class Probe:
    """One detection attempt. Only the probe holding the active token may act."""

    token: int
    started_at: float
    message_id: Optional[str] = None


@dataclass
class ProbeResult:
    payload: Optional[AudioPayload] = None
    error: Optional[CaptureError] = None

    @property
    def success(self) -> bool:
        return self.payload is not None

    @property
    def abandoned(self) -> bool:
        return self.error is not None and self.error.error_type == CaptureErrorType.ABANDONED


class PlaybackCorrelator:
    """Matches translate clicks to captured audio blobs."""

    def __init__(
        self,
        document: Element,
        bridge: InterceptorBridge,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self._document = document
        self._bridge = bridge
        self._settings = settings
        self._clock = clock
        self._tokens = itertools.count(1)
        self._active_token = 0

    @property
    def active_token(self) -> int:
        return self._active_token

    async def capture_audio(self, message: Element) -> ProbeResult:
        """
        Recover the encoded audio behind ``message``.

        Never raises for expected failures; the result carries a CaptureError
        instead (no_control, no_audio_detected, abandoned, blob_not_found,
        request_timeout).
        """
        control = find_play_control(message, self._settings)
        if control is None:
            logger.info("No play button found")
            return ProbeResult(error=CaptureError.of(CaptureErrorType.NO_CONTROL))

        probe = self._begin_probe(message)
        logger.debug(f"Probe {probe.token}: clicking play to detect audio")
        control.click()
        return await self._await_playback(probe, message)

    def _begin_probe(self, message: Element) -> Probe:
        token = next(self._tokens)
        self._active_token = token
        self._bridge.reset_playback()
        return Probe(token=token, started_at=self._clock(), message_id=message.get_attribute("data-id"))

    async def _await_playback(self, probe: Probe, message: Element) -> ProbeResult:
        for _ in range(self._settings.probe_max_polls):
            await asyncio.sleep(self._settings.probe_poll_interval)

            if probe.token != self._active_token:
                logger.debug(f"Probe {probe.token} superseded by probe {self._active_token}")
                return ProbeResult(error=CaptureError.of(CaptureErrorType.ABANDONED))

            observed = self._bridge.last_playback
            if observed.timestamp >= probe.started_at and observed.usable:
                url, size = observed.url, observed.size
                logger.info(f"Detected audio! Size: {size} URL: {(url or '')[:40]}")
                self._schedule_pause(message)
                return await self._fetch(url, size)

        self._pause(message)
        logger.info("Timeout waiting for audio playback")
        return ProbeResult(error=CaptureError.of(CaptureErrorType.NO_AUDIO_DETECTED))

    async def _fetch(self, url: Optional[str], size: Optional[int]) -> ProbeResult:
        try:
            if url:
                logger.debug("Requesting blob by URL")
                payload = await self._bridge.request_by_url(url)
            else:
                logger.debug("Requesting blob by size")
                payload = await self._bridge.request_by_size(size)
        except (BlobRequestError, BlobRequestTimeout) as e:
            logger.warning(f"Failed to get blob: {e}")
            return ProbeResult(error=classify_error(e))
        return ProbeResult(payload=payload)

    def _schedule_pause(self, message: Element) -> None:
        asyncio.get_running_loop().call_later(self._settings.pause_delay, self._pause, message)

    def _pause(self, message: Element) -> None:
        """Best effort; a missing or failing pause control is not an error."""
        try:
            # Probed message first, then anywhere on the page
            control = find_pause_control(message, self._settings) or find_pause_control(
                self._document, self._settings
            )
            if control is not None:
                control.click()
        except Exception as e:
            logger.debug(f"Pause failed: {e}")


__all__ = ["Probe", "ProbeResult", "PlaybackCorrelator"]
