"""
Configuration module for VoiceBridge.

This module handles capture pipeline configuration, settings loading,
and environment variable management.
"""

import re
import threading
from pathlib import Path
from typing import List, Literal, Optional

import keyring
from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KEYRING_SERVICE = "voicebridge"


class Settings(BaseSettings):
    """Capture pipeline settings with validation."""

    # Blob capture
    min_blob_size: int = Field(
        default=1000, description="Blobs at or below this many bytes are never captured (icons, thumbnails)"
    )
    audio_type_markers: List[str] = Field(
        default=["audio", "ogg", "opus"],
        description="Substrings that mark a declared media type as audio-like (case-insensitive)",
    )
    size_tolerance: int = Field(
        default=100, description="Absolute byte tolerance for fuzzy size lookups"
    )
    registry_capacity: int = Field(
        default=50, description="Maximum entries kept in each registry index (FIFO eviction)"
    )
    audio_context_constructors: List[str] = Field(
        default=["AudioContext", "webkitAudioContext", "OfflineAudioContext", "BaseAudioContext"],
        description="Window attributes whose decode_audio_data is intercepted",
    )

    # Probe / correlation
    probe_poll_interval: float = Field(default=0.1, description="Seconds between playback polls")
    probe_max_polls: int = Field(default=30, description="Polls before a probe gives up")
    pause_delay: float = Field(default=0.05, description="Delay before the best-effort pause click")
    blob_request_timeout: float = Field(default=5.0, description="Seconds to wait for a bytes-response")
    max_concurrent_translations: int = Field(
        default=3, description="Concurrent end-to-end translate actions allowed"
    )

    # Host page controls
    play_control_labels: List[str] = Field(
        default=["Play voice message", "Sesli mesajı oynat"],
        description="aria-label values of native play buttons",
    )
    play_control_icons: List[str] = Field(
        default=["audio-play", "ptt-play"], description="data-icon values of native play icons"
    )
    pause_control_labels: List[str] = Field(
        default=["Pause voice message", "Sesli mesajı duraklat"],
        description="aria-label values of native pause buttons",
    )
    pause_control_icons: List[str] = Field(
        default=["audio-pause", "ptt-pause"], description="data-icon values of native pause icons"
    )

    # Relay
    relay_backend: Literal["http", "gemini"] = Field(default="http", description="Relay implementation")
    relay_url: str = Field(default="http://localhost:3456", description="Base URL of the HTTP relay")
    relay_timeout: float = Field(default=35.0, description="Relay latency bound in seconds")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Generative AI API key")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Model used by the direct relay")
    target_language: str = Field(default="tr", description="Language incoming messages are translated into")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Log to file")
    max_log_size: int = Field(default=10, description="Max log file size in MB")

    model_config = SettingsConfigDict(
        env_prefix="VOICEBRIDGE_",
        env_file=".env",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("size_tolerance")
    @classmethod
    def validate_size_tolerance(cls, v: int) -> int:
        if v < 0:
            raise ValueError("size_tolerance must not be negative")
        return v

    @field_validator("registry_capacity", "max_concurrent_translations", "probe_max_polls")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("target_language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        """Validate language codes."""
        if not re.match(r"^[a-z]{2,3}$", v):
            raise ValueError(f"Invalid language code: {v}")
        return v

    @field_validator("relay_url")
    @classmethod
    def validate_relay_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Relay URL must be http(s): {v}")
        return v.rstrip("/")


def get_config_path() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".voicebridge"


def ensure_config_dir() -> Path:
    """Ensure the configuration directory exists."""
    config_path = get_config_path()
    config_path.mkdir(exist_ok=True)
    return config_path


def load_api_key() -> Optional[str]:
    """Load the Gemini API key from keyring."""
    try:
        return keyring.get_password(KEYRING_SERVICE, "gemini_api_key")
    except Exception as e:
        logger.warning(f"Failed to load Gemini API key from keyring: {e}")
        return None


def save_api_key(api_key: str) -> bool:
    """Save the Gemini API key to keyring."""
    try:
        keyring.set_password(KEYRING_SERVICE, "gemini_api_key", api_key)
        logger.info("Gemini API key saved to keyring")
        return True
    except Exception as e:
        logger.error(f"Failed to save Gemini API key to keyring: {e}")
        return False


def validate_api_key_format(api_key: str) -> bool:
    """Google keys start with 'AIza' followed by 35+ URL-safe characters."""
    if not api_key or not isinstance(api_key, str):
        return False
    return bool(re.match(r"^AIza[0-9A-Za-z_-]{35,}$", api_key))


def mask_api_key(api_key: Optional[str]) -> str:
    if not api_key:
        return "<unset>"
    return f"{api_key[:4]}...{api_key[-4:]}" if len(api_key) > 8 else "****"


_settings: Optional[Settings] = None
_settings_lock = threading.RLock()


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    with _settings_lock:
        if _settings is None:
            _settings = Settings()
            if not _settings.gemini_api_key:
                stored = load_api_key()
                if stored:
                    _settings.gemini_api_key = stored
        return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    with _settings_lock:
        _settings = None
