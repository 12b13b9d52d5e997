"""Voice interaction state and orchestration."""

from remind.voice.controller import VoiceCallbacks, VoiceController
from remind.voice.state import (
    Connecting,
    ConnectionFailed,
    Disconnected,
    Error,
    Idle,
    Playing,
    Processing,
    Recording,
    StateKind,
    VoiceInteractionState,
)
from remind.voice.state_machine import ALLOWED_TRANSITIONS, VoiceStateMachine, is_valid_transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Connecting",
    "ConnectionFailed",
    "Disconnected",
    "Error",
    "Idle",
    "Playing",
    "Processing",
    "Recording",
    "StateKind",
    "VoiceCallbacks",
    "VoiceController",
    "VoiceInteractionState",
    "VoiceStateMachine",
    "is_valid_transition",
]
