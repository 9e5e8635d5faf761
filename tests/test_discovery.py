"""
Tests for locating messages and controls in the page.
"""

from voicebridge.content.discovery import (
    conversation_context,
    find_image_messages,
    find_pause_control,
    find_play_control,
    find_text_messages,
    find_voice_messages,
    message_container,
    message_text,
    sender_name,
)
from voicebridge.page.dom import Element

from fakes import ChatPage


class TestControls:
    def test_play_button_preferred_over_icon(self, settings):
        message = Element("div", {"data-id": "m1"})
        icon = message.append(Element("span", {"data-icon": "audio-play"}))
        button = message.append(Element("button", {"aria-label": "Sesli mesajı oynat"}))

        assert find_play_control(message, settings) is button
        assert icon is not None

    def test_label_on_wrong_tag_ignored(self, settings):
        message = Element("div", children=[Element("div", {"aria-label": "Play voice message"})])

        assert find_play_control(message, settings) is None

    def test_pause_control_by_icon(self, window, settings):
        icon = window.document.append(Element("span", {"data-icon": "ptt-pause"}))

        assert find_pause_control(window.document, settings) is icon


class TestVoiceMessages:
    def test_voice_messages_in_document_order(self, window, settings):
        """Test that each message holding a play control is listed once."""
        page = ChatPage(window)
        page.add_text_message("merhaba")
        first = window.document.append(Element("div", {"role": "row"}))
        first.append(Element("button", {"aria-label": "Play voice message"}))
        first.append(Element("span", {"data-icon": "audio-play"}))
        second = window.document.append(Element("div", {"role": "row"}))
        second.append(Element("span", {"data-icon": "ptt-play"}))

        found = find_voice_messages(window.document, settings)

        assert found == [first, second]

    def test_container_walks_up_to_message(self):
        row = Element("div", {"role": "row"})
        inner = row.append(Element("div")).append(Element("div")).append(Element("span"))

        assert message_container(inner) is row


class TestText:
    def test_sender_and_text(self, window):
        row = ChatPage(window).add_text_message("  Nasılsın?  ", sender="Zeynep Kaya")

        assert sender_name(row) == "Zeynep Kaya"
        assert message_text(row) == "Nasılsın?"

    def test_quoted_header_skipped(self):
        """Test that the message body, not a quoted reply, is returned."""
        message = Element("div", {"data-id": "m1"})
        message.append(Element("span", classes=["quoted-mention", "selectable-text"], text="older message"))
        message.append(Element("span", classes=["selectable-text"], text="actual reply"))

        assert message_text(message) == "actual reply"

    def test_span_fallback(self):
        message = Element("div", {"data-id": "m1"})
        body = message.append(Element("div", classes=["copyable-text"]))
        body.append(Element("span", {"dir": "ltr"}, text="fallback text"))

        assert message_text(message) == "fallback text"

    def test_no_sender_header(self):
        assert sender_name(Element("div")) is None


class TestTextMessages:
    """Tests for finding text messages to offer translation on."""

    def test_text_messages_found_voice_notes_skipped(self, window, settings):
        page = ChatPage(window)
        first = page.add_text_message("merhaba")
        page.add_voice_message(b"\x00" * 2000)
        second = page.add_text_message("kayfa haluk?", outgoing=True)

        found = find_text_messages(window.document, settings)

        assert found == [first.children[0], second.children[0]]

    def test_too_short_text_skipped(self, window, settings):
        page = ChatPage(window)
        page.add_text_message("k")

        assert find_text_messages(window.document, settings) == []

    def test_selectable_fallback(self, window, settings):
        row = window.document.append(Element("div", {"role": "row"}))
        row.append(Element("span", classes=["selectable-text"], text="shukran"))

        assert find_text_messages(window.document, settings) == [row]

    def test_directional_span_fallback(self, window, settings):
        """Test that a bare span[dir] counts only inside a message row."""
        row = window.document.append(Element("div", {"data-id": "m9"}))
        row.append(Element("div")).append(Element("span", {"dir": "rtl"}, text="ahlan"))
        window.document.append(Element("span", {"dir": "auto"}, text="Search or start a new chat"))

        assert find_text_messages(window.document, settings) == [row]


class TestImageMessages:
    def test_large_images_found(self, window):
        page = ChatPage(window)
        photo = page.add_image_message(b"\xff\xd8" * 600)
        page.add_image_message(b"\xff\xd8" * 10, width=40, height=40)
        page.add_text_message("nice")

        assert find_image_messages(window.document) == [photo.children[0]]

    def test_media_url_and_missing_size(self, window):
        row = window.document.append(Element("div", {"role": "row"}))
        row.append(Element("img", {"src": "https://media.example/p.jpg", "width": "640", "height": "480"}))
        other = window.document.append(Element("div", {"role": "row"}))
        other.append(Element("img", {"src": "https://media.example/q.jpg"}))

        assert find_image_messages(window.document) == [row]

    def test_container_beyond_walk_limit(self, window):
        """Test that a deeply nested image still reaches its row."""
        row = window.document.append(Element("div", {"data-id": "deep"}))
        node = row
        for _ in range(30):
            node = node.append(Element("div"))
        node.append(Element("img", {"src": "blob:x", "width": "200", "height": "200"}))

        assert find_image_messages(window.document) == [row]


class TestConversationContext:
    def test_limited_to_preceding_messages(self, window):
        page = ChatPage(window)
        rows = [page.add_text_message(f"message {i}", sender="Ahmed") for i in range(12)]

        context = conversation_context(window.document, rows[10])

        assert len(context) == 8
        assert context[0]["text"] == "message 2"
        assert context[-1]["text"] == "message 9"

    def test_unknown_message_has_no_context(self, window):
        ChatPage(window).add_text_message("hello")

        assert conversation_context(window.document, Element("div", {"role": "row"})) == []
