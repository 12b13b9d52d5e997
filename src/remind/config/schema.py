"""
Configuration schema using Pydantic.

Principles:
- All config values have sensible defaults
- Validation happens at load time
- Credentials come from the environment or a gitignored local file
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from urllib.parse import urlencode

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from remind.voicelive.models import (
    AudioFormat,
    AzureStandardVoice,
    InputAudioTranscription,
    Modality,
    OutputAudioFormat,
    RequestSession,
    ServerVAD,
)

MIN_SPEAKING_RATE = 0.5
MAX_SPEAKING_RATE = 1.5

DEFAULT_INSTRUCTIONS = (
    "You are a helpful voice assistant for elderly users. "
    "Speak clearly, warmly, and patiently. "
    "Keep responses concise and easy to understand."
)


def clamp_speaking_rate(rate: float) -> float:
    """Clamp a speaking-rate multiplier to the supported range."""
    return max(MIN_SPEAKING_RATE, min(MAX_SPEAKING_RATE, rate))


class VoiceLiveConfig(BaseModel):
    """Azure Voice Live endpoint and credentials."""

    api_key: str = ""
    resource_name: str = ""
    api_version: str = "2025-05-01-preview"
    model: str = "gpt-4o-realtime-preview"

    connect_timeout_seconds: float = Field(default=15.0, gt=0.0, le=120.0)
    session_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)

    @property
    def websocket_url(self) -> str | None:
        """Realtime endpoint URL, or None when the resource name is missing."""
        if not self.resource_name:
            return None
        query = urlencode({"api-version": self.api_version, "model": self.model})
        return f"wss://{self.resource_name}.services.ai.azure.com/voice-live/realtime?{query}"

    def validate_settings(self) -> str | None:
        """
        Check that the configuration can be used to connect.

        Returns:
            Error message, or None if valid
        """
        if not self.api_key:
            return "Azure API key is not configured (set REMIND_VOICELIVE__API_KEY)"
        if not self.resource_name:
            return "Azure resource name is not configured (set REMIND_VOICELIVE__RESOURCE_NAME)"
        if not self.model:
            return "Model name is required"
        return None

    @property
    def is_valid(self) -> bool:
        return self.validate_settings() is None


class VoiceSettings(BaseModel):
    """User-adjustable voice and session settings."""

    # Voice
    voice_name: str = "en-US-AvaMultilingualNeural"
    speaking_rate: float = 1.0
    voice_temperature: float = Field(default=0.8, ge=0.0, le=1.0)

    # Behavior
    instructions: str = DEFAULT_INSTRUCTIONS

    # Turn detection (server VAD)
    vad_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    vad_prefix_padding_ms: int = Field(default=300, ge=0)
    vad_silence_duration_ms: int = Field(default=500, ge=0)

    session_temperature: float = Field(default=0.8, ge=0.6, le=1.2)
    transcription_model: str = "whisper-1"

    @field_validator("speaking_rate")
    @classmethod
    def validate_speaking_rate(cls, v: float) -> float:
        """Clamp to the supported range."""
        return clamp_speaking_rate(v)

    def to_session(self) -> RequestSession:
        """Build the ``session.update`` payload from these settings."""
        return RequestSession(
            modalities=[Modality.TEXT, Modality.AUDIO],
            voice=AzureStandardVoice(
                name=self.voice_name,
                temperature=self.voice_temperature,
                rate=f"{self.speaking_rate:.1f}",
            ),
            instructions=self.instructions,
            input_audio_format=AudioFormat.PCM16,
            output_audio_format=OutputAudioFormat.PCM16,
            input_audio_transcription=InputAudioTranscription(model=self.transcription_model),
            turn_detection=ServerVAD(
                threshold=self.vad_threshold,
                prefix_padding_ms=self.vad_prefix_padding_ms,
                silence_duration_ms=self.vad_silence_duration_ms,
            ),
            temperature=self.session_temperature,
        )


class AudioConfig(BaseModel):
    """Audio capture/playback configuration."""

    sample_rate: int = Field(default=24000, ge=8000, le=48000)
    channels: Literal[1] = 1
    chunk_duration_ms: int = Field(default=100, ge=10, le=1000)

    capture_buffer_max: int = Field(default=100, ge=1)
    playback_buffer_max: int = Field(default=50, ge=1)

    # None = system default device
    input_device: str | None = None
    output_device: str | None = None


class RemindConfig(BaseSettings):
    """Root configuration for reMIND."""

    model_config = SettingsConfigDict(
        env_prefix="REMIND_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Sub-configurations
    voicelive: VoiceLiveConfig = Field(default_factory=VoiceLiveConfig)
    voice: VoiceSettings = Field(default_factory=VoiceSettings)
    audio: AudioConfig = Field(default_factory=AudioConfig)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path | None = None

    # Paths
    config_dir: Path = Field(default=Path("~/.remind"))

    @field_validator("config_dir")
    @classmethod
    def validate_paths(cls, v: Path) -> Path:
        """Expand user paths."""
        return Path(v).expanduser()

    @property
    def settings_path(self) -> Path:
        """File holding persisted voice settings."""
        return self.config_dir / "voice_settings.yaml"
