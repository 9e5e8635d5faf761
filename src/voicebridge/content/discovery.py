"""
Locating messages and native controls in the host page.

Helpers used by the content script to find messages of each kind (voice
notes, text, images) and their native controls, plus message text and the
surrounding conversation.
"""

import re
from typing import Dict, List, Optional

from ..core.config import Settings
from ..page.dom import Document, Element, any_of, attr_in

MAX_CONTAINER_DEPTH = 20
MESSAGE_WALK_DEPTH = 25
MIN_IMAGE_SIDE = 100
MIN_TEXT_LENGTH = 2
OUTGOING_ICONS = ("msg-dblcheck", "msg-check")


def is_message_container(el: Element) -> bool:
    return bool(
        el.get_attribute("data-id")
        or el.get_attribute("role") == "row"
        or "message-in" in el.classes
        or "message-out" in el.classes
        or el.has_class("focusable-list-item")
    )


def message_container(el: Element, max_depth: int = MAX_CONTAINER_DEPTH) -> Optional[Element]:
    """Walk up from ``el`` to the message it belongs to."""
    for depth, node in enumerate(el.ancestors()):
        if depth >= max_depth:
            break
        if is_message_container(node):
            return node
    return el.closest(
        lambda n: bool(n.get_attribute("data-id")) or n.get_attribute("role") == "row" or n.get_attribute("tabindex") == "-1"
    )


def _play_button(settings: Settings):
    return attr_in("aria-label", settings.play_control_labels, tag="button")


def _play_icon(settings: Settings):
    return attr_in("data-icon", settings.play_control_icons, tag="span")


def find_play_control(message: Element, settings: Settings) -> Optional[Element]:
    """The message's native play button, or its play icon as a fallback."""
    return message.find(_play_button(settings)) or message.find(_play_icon(settings))


def find_pause_control(document: Element, settings: Settings) -> Optional[Element]:
    return document.find(
        any_of(
            attr_in("aria-label", settings.pause_control_labels, tag="button"),
            attr_in("data-icon", settings.pause_control_icons, tag="span"),
        )
    )


def find_voice_messages(document: Document, settings: Settings) -> List[Element]:
    """Unique message containers holding a play control, in document order."""
    seen: Dict[int, Element] = {}
    controls = document.find_all(any_of(_play_button(settings), _play_icon(settings)))
    for control in controls:
        container = message_container(control)
        if container is not None and id(container) not in seen:
            seen[id(container)] = container
    return list(seen.values())


def sender_name(message: Element) -> Optional[str]:
    """Parse '[12:01, 1/2/2026] Name: ' from data-pre-plain-text."""
    el = message.find(lambda n: n.get_attribute("data-pre-plain-text") is not None)
    if el is None:
        return None
    match = re.search(r"\] (.+?):", el.get_attribute("data-pre-plain-text") or "")
    return match.group(1) if match else None


def find_text_element(message: Element) -> Optional[Element]:
    # The message body is the last selectable span; quoted headers come first
    selectable = message.find_all(lambda n: "selectable-text" in n.classes)
    if selectable:
        return selectable[-1]
    copyable = message.find(
        lambda n: n.get_attribute("data-pre-plain-text") is not None or "copyable-text" in n.classes
    )
    if copyable is not None:
        spans = copyable.find_all(lambda n: n.tag == "span" and n.get_attribute("dir") is not None)
        if spans:
            return spans[-1]
    return None


def message_text(message: Element) -> str:
    el = find_text_element(message)
    return el.text_content.strip() if el is not None else ""


def _is_text_body(el: Element) -> bool:
    return el.get_attribute("data-pre-plain-text") is not None or "copyable-text" in el.classes


def _is_row_span(el: Element) -> bool:
    if el.tag != "span" or el.get_attribute("dir") is None:
        return False
    return el.closest(lambda n: bool(n.get_attribute("data-id")) or n.get_attribute("role") == "row") is not None


def _anchor_text(anchor: Element) -> str:
    if not _is_text_body(anchor):
        return anchor.text_content.strip()
    inner = anchor.find(lambda n: "selectable-text" in n.classes) or anchor.find(
        lambda n: n.tag == "span" and n.get_attribute("dir") is not None
    )
    return inner.text_content.strip() if inner is not None else ""


def find_text_messages(document: Document, settings: Settings) -> List[Element]:
    """
    Unique containers of text messages, in document order.

    Message bodies are found by their plain-text header or copyable class;
    pages without those fall back to selectable spans, then to any
    directional span inside a row. Voice notes are skipped.
    """
    anchors = document.find_all(_is_text_body)
    if not anchors:
        anchors = document.find_all(lambda n: "selectable-text" in n.classes)
    if not anchors:
        anchors = [el for el in document.find_all(_is_row_span) if len(el.text_content.strip()) >= MIN_TEXT_LENGTH]

    seen: Dict[int, Element] = {}
    for anchor in anchors:
        if len(_anchor_text(anchor)) < MIN_TEXT_LENGTH:
            continue
        container = message_container(anchor, max_depth=MESSAGE_WALK_DEPTH)
        if container is None or id(container) in seen:
            continue
        if find_play_control(container, settings) is not None:
            continue
        seen[id(container)] = container
    return list(seen.values())


def is_message_image(el: Element) -> bool:
    src = el.get_attribute("src") or ""
    return el.tag == "img" and ("blob:" in src or "media" in src)


def _side(el: Element, name: str) -> int:
    try:
        return int(el.get_attribute(name) or 0)
    except ValueError:
        return 0


def find_message_image(message: Element) -> Optional[Element]:
    return message.find(is_message_image)


def find_image_messages(document: Document) -> List[Element]:
    """Unique containers of messages showing an image, skipping icons and avatars."""

    def is_row(n: Element) -> bool:
        return bool(n.get_attribute("data-id")) or n.get_attribute("role") == "row"

    seen: Dict[int, Element] = {}
    for img in document.find_all(is_message_image):
        if _side(img, "width") < MIN_IMAGE_SIDE or _side(img, "height") < MIN_IMAGE_SIDE:
            continue
        container = None
        for depth, node in enumerate(img.ancestors()):
            if depth >= MESSAGE_WALK_DEPTH:
                break
            if is_row(node):
                container = node
                break
        if container is None:
            container = img.closest(is_row)
        if container is not None and id(container) not in seen:
            seen[id(container)] = container
    return list(seen.values())


def is_outgoing(message: Element) -> bool:
    if "message-out" in message.classes:
        return True
    return message.find(
        lambda n: n.get_attribute("data-icon") in OUTGOING_ICONS or "message-out" in n.classes
    ) is not None


def conversation_context(document: Document, message: Element, max_messages: int = 8) -> List[Dict[str, str]]:
    """Up to ``max_messages`` text messages preceding ``message``, oldest first."""
    rows = document.find_all(lambda n: n.get_attribute("role") == "row")
    if message not in rows:
        rows = document.find_all(lambda n: bool(n.get_attribute("data-id")))
    if message not in rows:
        return []

    index = rows.index(message)
    context = []
    for row in rows[max(0, index - max_messages):index]:
        text = message_text(row)
        if not text:
            continue
        sender = "me" if is_outgoing(row) else (sender_name(row) or "them")
        context.append({"sender": sender, "text": text})
    return context


__all__ = [
    "conversation_context",
    "find_image_messages",
    "find_message_image",
    "find_pause_control",
    "find_play_control",
    "find_text_messages",
    "find_voice_messages",
    "message_container",
    "message_text",
    "sender_name",
]
