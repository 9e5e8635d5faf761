"""
Pytest configuration for VoiceBridge test suite.

This file provides common fixtures for all tests.
Note: the src/ path is configured via pytest.ini's pythonpath setting.
"""

import logging

import pytest
from loguru import logger

from voicebridge.content.bridge import InterceptorBridge
from voicebridge.content.correlator import PlaybackCorrelator
from voicebridge.core.channel import MessageChannel
from voicebridge.core.config import Settings
from voicebridge.interceptor import install_interceptor
from voicebridge.interceptor.registry import BlobRegistry
from voicebridge.page.window import Window

from fakes import RecordingRelay


@pytest.fixture
def loguru_caplog(caplog):
    """Fixture to bridge loguru to pytest caplog with proper cleanup."""
    logger.remove()

    handler_id = logger.add(caplog.handler, format="{message}")
    caplog.set_level(logging.DEBUG)

    yield caplog

    try:
        logger.remove(handler_id)
    except ValueError:
        # Handler already removed
        pass


@pytest.fixture
def settings():
    """Settings with short timings so probes and timeouts finish quickly."""
    return Settings(
        _env_file=None,
        probe_poll_interval=0.01,
        probe_max_polls=20,
        pause_delay=0.0,
        blob_request_timeout=0.3,
        relay_timeout=1.0,
        registry_capacity=5,
    )


@pytest.fixture
def registry(settings):
    return BlobRegistry(settings)


@pytest.fixture
def window():
    return Window()


@pytest.fixture
def channel():
    return MessageChannel()


@pytest.fixture
def relay():
    return RecordingRelay()


@pytest.fixture
def wired(window, channel, settings, registry):
    """Interceptor, bridge and correlator sharing one channel."""
    hooked = install_interceptor(window, channel, settings, registry=registry)
    bridge = InterceptorBridge(channel, settings)
    correlator = PlaybackCorrelator(window.document, bridge, settings)
    yield correlator, bridge
    bridge.close()
    hooked.uninstall()
