"""
Structured message channel between the page context and the content script.

The two contexts share nothing but this channel. Posting serializes the
message to JSON text and schedules delivery on the event loop, so a receiver
always gets its own copy, later than the post, and in posting order.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel

from .messages import parse_message

Listener = Callable[[BaseModel], None]


class MessageChannel:
    """Ordered, asynchronous, copy-on-post message channel."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._listeners: List[Listener] = []
        self._posted = 0

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.get_running_loop()
        return self._loop

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def post(self, message: Union[BaseModel, Dict[str, Any]]) -> None:
        """Post a message; delivery happens on a later loop iteration."""
        if isinstance(message, BaseModel):
            payload = message.model_dump(mode="json")
        else:
            payload = message
        text = json.dumps(payload)
        self._posted += 1
        self._get_loop().call_soon(self._dispatch, text)

    @property
    def posted_count(self) -> int:
        return self._posted

    def _dispatch(self, text: str) -> None:
        message = parse_message(json.loads(text))
        if message is None:
            logger.trace(f"Ignoring foreign channel message: {text[:80]}")
            return
        # Models are frozen, so one parsed copy can be shared by all listeners
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"Channel listener failed: {e}")


__all__ = ["MessageChannel"]
