"""
Version helpers for VoiceBridge.

Provides get_version(), which returns the installed package version or
'0.0.0+local' when running from a source checkout.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as pkg_version
from typing import Final

DEFAULT_VERSION: Final[str] = "0.0.0+local"


def get_version() -> str:
    """Resolve the package version from installed metadata."""
    try:
        return pkg_version("voicebridge")
    except PackageNotFoundError:
        return DEFAULT_VERSION


__all__ = ["get_version", "DEFAULT_VERSION"]
