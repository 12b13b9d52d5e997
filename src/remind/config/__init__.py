"""Configuration module for reMIND."""

from remind.config.loader import ConfigLoader, load_config
from remind.config.schema import AudioConfig, RemindConfig, VoiceLiveConfig, VoiceSettings
from remind.config.settings_store import SettingsStore

__all__ = [
    "AudioConfig",
    "ConfigLoader",
    "RemindConfig",
    "SettingsStore",
    "VoiceLiveConfig",
    "VoiceSettings",
    "load_config",
]
