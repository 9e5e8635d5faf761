"""
Tests for the page interceptor.

This module tests:
- Blob capture through the page's object URL factory
- Both decode calling conventions recording fingerprints
- Playback notifications from the audio graph and media elements
- Exactly one response per byte request
- Install idempotence and uninstall restoring the originals
"""

import asyncio

import pytest

from voicebridge.core.channel import MessageChannel
from voicebridge.core.config import Settings
from voicebridge.core.messages import (
    BlobCaptured,
    BytesResponse,
    GetBytesBySize,
    GetBytesByUrl,
    PlaybackBySize,
    PlaybackByUrl,
)
from voicebridge.interceptor import get_blob_registry, install_interceptor
from voicebridge.interceptor.hooks import INSTALL_MARKER, WRAPPED_MARKER, PageInterceptor
from voicebridge.page.media import Blob, EncodingError


@pytest.fixture
def interceptor(window, registry, channel, settings):
    hooked = install_interceptor(window, channel, settings, registry=registry)
    yield hooked
    hooked.uninstall()


@pytest.fixture
def received(channel):
    messages = []
    channel.add_listener(messages.append)
    return messages


async def _settle(rounds: int = 5):
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestBlobInterception:
    """Tests for capturing blobs as the page mints URLs for them."""

    def test_audio_blob_captured_and_announced(self, window, interceptor, received):
        """Test that an audio blob is registered and announced without its bytes."""

        async def scenario():
            url = window.URL.create_object_url(Blob(b"\x00" * 50000, "audio/ogg; codecs=opus"))
            await _settle()
            return url

        url = asyncio.run(scenario())

        assert url.startswith("blob:https://web.whatsapp.com/")
        assert interceptor.registry.find_by_url(url).size == 50000
        announced = [m for m in received if isinstance(m, BlobCaptured)]
        assert len(announced) == 1
        assert announced[0].url == url
        assert announced[0].size == 50000
        assert not hasattr(announced[0], "encoded_bytes")

    def test_non_audio_blob_ignored(self, window, interceptor, received):
        async def scenario():
            window.URL.create_object_url(Blob(b"\x00" * 50000, "image/jpeg"))
            window.URL.create_object_url(Blob(b"\x00" * 500, "audio/ogg"))
            await _settle()

        asyncio.run(scenario())

        assert received == []
        assert interceptor.registry.stats()["by_url"] == 0

    def test_original_url_returned_unchanged(self, window, interceptor):
        """Test that the page still resolves the URL it was handed."""
        blob = Blob(b"\x00" * 5000, "audio/ogg")

        async def scenario():
            return window.URL.create_object_url(blob)

        url = asyncio.run(scenario())

        assert window.URL.resolve(url) is blob


class TestDecodeInterception:
    """Tests for fingerprinting decoded buffers."""

    def test_callback_style_records_fingerprint(self, window, interceptor):
        """Test the callback convention: page callback runs and the size is recorded."""
        decoded = []

        async def scenario():
            ctx = window.AudioContext()
            future = ctx.decode_audio_data(b"\x00" * 6000, decoded.append)
            await future

        asyncio.run(scenario())

        assert len(decoded) == 1
        assert decoded[0].length == 3000
        assert interceptor.registry.encoded_size_for(decoded[0]) == 6000

    def test_awaitable_style_records_fingerprint(self, window, interceptor):
        """Test the awaitable convention resolves to the same buffer and records it."""

        async def scenario():
            ctx = window.webkitAudioContext()
            return await ctx.decode_audio_data(b"\x00" * 8000)

        buffer = asyncio.run(scenario())

        assert buffer.length == 4000
        assert interceptor.registry.encoded_size_for(buffer) == 8000

    def test_decode_error_still_reaches_page(self, window, interceptor):
        """Test that decode failures propagate unchanged through both conventions."""
        errors = []

        async def scenario():
            ctx = window.AudioContext()
            ctx.decode_audio_data(b"", None, errors.append)
            await _settle()
            with pytest.raises(EncodingError):
                await ctx.decode_audio_data(b"")

        asyncio.run(scenario())

        assert len(errors) == 1
        assert interceptor.registry.stats()["decoded"] == 0

    def test_each_constructor_records_once(self, window, interceptor, mocker):
        """Test that every constructor is wrapped and one decode records one fingerprint."""
        spy = mocker.spy(interceptor.registry, "record_decoded")

        async def scenario():
            await window.OfflineAudioContext().decode_audio_data(b"\x00" * 4000)

        asyncio.run(scenario())

        for name in ("AudioContext", "webkitAudioContext", "OfflineAudioContext", "BaseAudioContext"):
            assert getattr(getattr(window, name).decode_audio_data, WRAPPED_MARKER, False)
        assert spy.call_count == 1

    def test_inherited_wrapper_not_wrapped_again(self, window, registry, channel):
        """Test that a subclass inheriting an already wrapped decoder is skipped."""
        settings = Settings(_env_file=None, audio_context_constructors=["BaseAudioContext", "AudioContext"])
        hooked = install_interceptor(window, channel, settings, registry=registry)

        assert "decode_audio_data" in window.BaseAudioContext.__dict__
        assert "decode_audio_data" not in window.AudioContext.__dict__
        hooked.uninstall()

    def test_missing_constructor_skipped(self, window, registry, channel, settings):
        del window.OfflineAudioContext
        hooked = PageInterceptor(window, registry, channel, settings)

        assert hooked.install() is True
        hooked.uninstall()


class TestPlaybackInterception:
    """Tests for playback notifications."""

    def test_source_start_posts_size(self, window, interceptor, received):
        """Test that starting a known buffer reports its encoded size."""

        async def scenario():
            ctx = window.AudioContext()
            buffer = await ctx.decode_audio_data(b"\x00" * 6000)
            source = ctx.create_buffer_source()
            source.buffer = buffer
            source.start()
            await _settle()
            return source

        source = asyncio.run(scenario())

        assert source.playing
        playbacks = [m for m in received if isinstance(m, PlaybackBySize)]
        assert [p.size for p in playbacks] == [6000]
        assert playbacks[0].timestamp > 0

    def test_unknown_buffer_not_reported(self, window, interceptor, received):
        from voicebridge.page.media import AudioBuffer

        async def scenario():
            ctx = window.AudioContext()
            source = ctx.create_buffer_source()
            source.buffer = AudioBuffer(length=12345, sample_rate=48000)
            source.start()
            await _settle()

        asyncio.run(scenario())

        assert not any(isinstance(m, PlaybackBySize) for m in received)

    def test_media_play_posts_blob_url(self, window, interceptor, received):
        async def scenario():
            window.HTMLAudioElement("blob:https://web.whatsapp.com/xyz").play()
            window.HTMLAudioElement("https://cdn.example/sound.mp3").play()
            await _settle()

        asyncio.run(scenario())

        urls = [m.url for m in received if isinstance(m, PlaybackByUrl)]
        assert urls == ["blob:https://web.whatsapp.com/xyz"]


class TestByteRequests:
    """Tests for serving bytes back to the content script."""

    def test_request_by_size_returns_bytes(self, window, interceptor, channel, received):
        payload = bytes(range(256)) * 20

        async def scenario():
            window.URL.create_object_url(Blob(payload, "audio/ogg"))
            channel.post(GetBytesBySize(size=len(payload), request_id="req_1"))
            await _settle()
            await interceptor.drain()
            await _settle()

        asyncio.run(scenario())

        responses = [m for m in received if isinstance(m, BytesResponse)]
        assert len(responses) == 1
        assert responses[0].ok
        assert responses[0].size == len(payload)
        assert responses[0].mime_type == "audio/ogg"

    def test_every_request_answered_exactly_once(self, window, interceptor, channel, received):
        """Test that hits and misses each get one response keyed by request id."""

        async def scenario():
            url = window.URL.create_object_url(Blob(b"\x00" * 3000, "audio/ogg"))
            channel.post(GetBytesByUrl(url=url, request_id="hit_url"))
            channel.post(GetBytesByUrl(url="blob:missing", request_id="miss_url"))
            channel.post(GetBytesBySize(size=3000, request_id="hit_size"))
            channel.post(GetBytesBySize(size=99999, request_id="miss_size"))
            await _settle()
            await interceptor.drain()
            await _settle()

        asyncio.run(scenario())

        responses = {m.request_id: m for m in received if isinstance(m, BytesResponse)}
        assert sorted(responses) == ["hit_size", "hit_url", "miss_size", "miss_url"]
        assert len([m for m in received if isinstance(m, BytesResponse)]) == 4
        assert responses["hit_url"].ok
        assert responses["hit_size"].ok
        assert responses["miss_size"].error == "Not found: size 99999"
        assert responses["miss_url"].error.startswith("Not found: url")

    def test_read_failure_reported_as_error(self, window, interceptor, channel, received, mocker):
        async def scenario():
            blob = Blob(b"\x00" * 3000, "audio/ogg")
            window.URL.create_object_url(blob)
            mocker.patch.object(blob, "array_buffer", side_effect=OSError("disk gone"))
            channel.post(GetBytesBySize(size=3000, request_id="req_err"))
            await _settle()
            await interceptor.drain()
            await _settle()

        asyncio.run(scenario())

        responses = [m for m in received if isinstance(m, BytesResponse)]
        assert len(responses) == 1
        assert responses[0].error == "Encoding failed: disk gone"


class TestInstallation:
    """Tests for install idempotence and restoration."""

    def test_second_install_returns_existing(self, window, interceptor, channel, settings):
        again = install_interceptor(window, channel, settings)

        assert again is interceptor
        assert getattr(window, INSTALL_MARKER) is interceptor
        assert interceptor.channel_count == 1

    def test_second_channel_attached_to_existing(self, window, interceptor, channel, settings):
        """Test that installing on a hooked window serves the new channel too."""
        # Arrange
        other = MessageChannel()
        on_first, on_other = [], []
        channel.add_listener(on_first.append)
        other.add_listener(on_other.append)

        # Act
        again = install_interceptor(window, other, settings)

        async def scenario():
            url = window.URL.create_object_url(Blob(b"\x01" * 5000, "audio/ogg"))
            other.post(GetBytesByUrl(url=url, request_id="from_other"))
            await _settle()
            await interceptor.drain()
            await _settle()

        asyncio.run(scenario())

        # Assert
        assert again is interceptor
        assert interceptor.channel_count == 2
        assert [type(m) for m in on_first] == [BlobCaptured]
        responses = [m for m in on_other if isinstance(m, BytesResponse)]
        assert len(responses) == 1
        assert responses[0].request_id == "from_other"
        assert responses[0].size == 5000

    def test_detach_keeps_hooks_until_last_channel(self, window, registry, channel, settings):
        original_play = window.HTMLAudioElement.play
        other = MessageChannel()
        hooked = install_interceptor(window, channel, settings, registry=registry)
        install_interceptor(window, other, settings)

        hooked.detach(other)
        assert hooked.installed
        assert window.HTMLAudioElement.play is not original_play

        hooked.detach(channel)
        assert not hooked.installed
        assert window.HTMLAudioElement.play is original_play
        assert not hasattr(window, INSTALL_MARKER)

    def test_direct_second_install_refused(self, window, interceptor, registry, channel, settings):
        other = PageInterceptor(window, registry, channel, settings)

        assert other.install() is False
        assert not other.installed

    def test_uninstall_restores_originals(self, window, registry, channel, settings):
        """Test that every patched primitive is restored."""
        originals = {
            "decode": window.BaseAudioContext.decode_audio_data,
            "start": window.AudioBufferSourceNode.start,
            "play": window.HTMLAudioElement.play,
            "create": window.URL.create_object_url,
        }
        hooked = install_interceptor(window, channel, settings, registry=registry)
        assert window.HTMLAudioElement.play is not originals["play"]

        hooked.uninstall()

        assert window.BaseAudioContext.decode_audio_data is originals["decode"]
        assert "decode_audio_data" not in window.BaseAudioContext.__dict__
        assert window.AudioBufferSourceNode.start is originals["start"]
        assert window.HTMLAudioElement.play is originals["play"]
        assert "create_object_url" not in window.URL.__dict__
        assert not hasattr(window, INSTALL_MARKER)
        assert not hooked.installed

    def test_windows_are_isolated(self, interceptor, window):
        from voicebridge.page.window import Window

        other = Window()

        assert other.HTMLAudioElement.play is not window.HTMLAudioElement.play
        assert "play" not in other.HTMLAudioElement.__dict__


class TestRegistrySingleton:
    def test_get_blob_registry_returns_same_instance(self, settings):
        assert get_blob_registry(settings) is get_blob_registry()
