"""
Isolated content-script package.

Correlates translate actions with captured audio and drives the relay.
Never touches the blob registry directly; everything goes through the
message channel.
"""

from .actions import ActionOutcome, TranslateActions
from .bridge import AudioPayload, InterceptorBridge, PlaybackObservation
from .correlator import PlaybackCorrelator, Probe, ProbeResult
from .discovery import find_play_control, find_voice_messages

__all__ = [
    "ActionOutcome",
    "AudioPayload",
    "InterceptorBridge",
    "PlaybackCorrelator",
    "PlaybackObservation",
    "Probe",
    "ProbeResult",
    "TranslateActions",
    "find_play_control",
    "find_voice_messages",
]
