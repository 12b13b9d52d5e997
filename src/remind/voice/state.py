"""
Voice interaction states.

A closed set of immutable variants, exactly one active at a time. Every
variant past connection setup carries the session id of the current
connection epoch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class StateKind(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTION_FAILED = "connection_failed"
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    PLAYING = "playing"
    ERROR = "error"


def format_bytes(count: int) -> str:
    """Human-readable byte size (B, KB, MB; integer division)."""
    if count < 1024:
        return f"{count}B"
    if count < 1024 * 1024:
        return f"{count // 1024}KB"
    return f"{count // (1024 * 1024)}MB"


def _short(session_id: str) -> str:
    return f"{session_id[:8]}..."


def _require_session(session_id: str) -> None:
    if not session_id:
        raise ValueError("session_id must be non-empty")


class _BaseState:
    """Derived queries shared by all variants."""

    kind: ClassVar[StateKind]
    session_id: str | None

    @property
    def is_connected(self) -> bool:
        return self.kind in _CONNECTED_KINDS

    @property
    def can_start_recording(self) -> bool:
        return self.kind == StateKind.IDLE

    @property
    def is_recording(self) -> bool:
        return self.kind == StateKind.RECORDING

    @property
    def is_processing(self) -> bool:
        return self.kind == StateKind.PROCESSING

    @property
    def is_playing(self) -> bool:
        return self.kind == StateKind.PLAYING

    @property
    def is_active(self) -> bool:
        return self.kind in _ACTIVE_KINDS

    @property
    def can_cancel(self) -> bool:
        return self.is_active

    @property
    def error_message(self) -> str | None:
        return None

    @property
    def display_text(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Disconnected(_BaseState):
    kind: ClassVar[StateKind] = StateKind.DISCONNECTED
    session_id: ClassVar[None] = None

    @property
    def display_text(self) -> str:
        return "Disconnected"

    def __str__(self) -> str:
        return "disconnected"


@dataclass(frozen=True)
class Connecting(_BaseState):
    kind: ClassVar[StateKind] = StateKind.CONNECTING
    session_id: ClassVar[None] = None

    @property
    def display_text(self) -> str:
        return "Connecting..."

    def __str__(self) -> str:
        return "connecting"


@dataclass(frozen=True)
class ConnectionFailed(_BaseState):
    kind: ClassVar[StateKind] = StateKind.CONNECTION_FAILED
    session_id: ClassVar[None] = None
    reason: str

    @property
    def error_message(self) -> str | None:
        return self.reason

    @property
    def display_text(self) -> str:
        return f"Failed: {self.reason}"

    def __str__(self) -> str:
        return f"connection_failed({self.reason})"


@dataclass(frozen=True)
class Idle(_BaseState):
    kind: ClassVar[StateKind] = StateKind.IDLE
    session_id: str

    def __post_init__(self) -> None:
        _require_session(self.session_id)

    @property
    def display_text(self) -> str:
        return "Ready"

    def __str__(self) -> str:
        return f"idle(session: {_short(self.session_id)})"


@dataclass(frozen=True)
class Recording(_BaseState):
    kind: ClassVar[StateKind] = StateKind.RECORDING
    session_id: str
    buffered_bytes: int = 0

    def __post_init__(self) -> None:
        _require_session(self.session_id)
        if self.buffered_bytes < 0:
            raise ValueError("buffered_bytes must be >= 0")

    @property
    def display_text(self) -> str:
        if self.buffered_bytes > 0:
            return f"Listening... ({format_bytes(self.buffered_bytes)})"
        return "Listening..."

    def __str__(self) -> str:
        return f"recording(session: {_short(self.session_id)}, {self.buffered_bytes} bytes)"


@dataclass(frozen=True)
class Processing(_BaseState):
    kind: ClassVar[StateKind] = StateKind.PROCESSING
    session_id: str

    def __post_init__(self) -> None:
        _require_session(self.session_id)

    @property
    def display_text(self) -> str:
        return "Processing..."

    def __str__(self) -> str:
        return f"processing(session: {_short(self.session_id)})"


@dataclass(frozen=True)
class Playing(_BaseState):
    kind: ClassVar[StateKind] = StateKind.PLAYING
    session_id: str
    active_chunks: int = 0

    def __post_init__(self) -> None:
        _require_session(self.session_id)

    @property
    def display_text(self) -> str:
        if self.active_chunks > 0:
            return f"Playing... ({self.active_chunks} chunks)"
        return "Playing..."

    def __str__(self) -> str:
        return f"playing(session: {_short(self.session_id)}, {self.active_chunks} buffers)"


@dataclass(frozen=True)
class Error(_BaseState):
    """Error state; recoverable when it still carries the session id."""

    kind: ClassVar[StateKind] = StateKind.ERROR
    session_id: str | None
    message: str

    @property
    def is_recoverable(self) -> bool:
        return bool(self.session_id)

    @property
    def error_message(self) -> str | None:
        return self.message

    @property
    def display_text(self) -> str:
        return f"Error: {self.message}"

    def __str__(self) -> str:
        if self.session_id:
            return f"error(session: {_short(self.session_id)}, {self.message})"
        return f"error({self.message})"


VoiceInteractionState = (
    Disconnected
    | Connecting
    | ConnectionFailed
    | Idle
    | Recording
    | Processing
    | Playing
    | Error
)

_CONNECTED_KINDS = frozenset(
    {StateKind.IDLE, StateKind.RECORDING, StateKind.PROCESSING, StateKind.PLAYING}
)
_ACTIVE_KINDS = frozenset({StateKind.RECORDING, StateKind.PROCESSING, StateKind.PLAYING})
