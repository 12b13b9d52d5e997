"""
Validated voice interaction state machine.

Transitions are checked against an allow-list keyed by state kind plus
two structural rules:

- Session identity: a transition between session-bearing states keeps
  the same session id. ``Error(None, ...)`` is always an acceptable
  target because it drops the session. From a state without a session
  only ``Error(None, ...)`` is accepted.
- Self-transitions exist only for recording (byte count must not
  decrease) and playing (chunk count refresh).

Invalid transitions are rejected and recorded; they never raise.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable

from remind.core.logging import get_logger
from remind.voice.state import (
    Disconnected,
    Recording,
    StateKind,
    VoiceInteractionState,
)

logger = get_logger("voice.state")

StateChangeCallback = Callable[[VoiceInteractionState, VoiceInteractionState], None]

MAX_REJECTED_HISTORY = 100

ALLOWED_TRANSITIONS: dict[StateKind, frozenset[StateKind]] = {
    StateKind.DISCONNECTED: frozenset({StateKind.CONNECTING}),
    StateKind.CONNECTING: frozenset(
        {
            StateKind.IDLE,
            StateKind.CONNECTION_FAILED,
            StateKind.DISCONNECTED,
            StateKind.ERROR,
        }
    ),
    StateKind.CONNECTION_FAILED: frozenset({StateKind.CONNECTING, StateKind.DISCONNECTED}),
    StateKind.IDLE: frozenset({StateKind.RECORDING, StateKind.DISCONNECTED, StateKind.ERROR}),
    StateKind.RECORDING: frozenset(
        {StateKind.RECORDING, StateKind.PROCESSING, StateKind.IDLE, StateKind.ERROR}
    ),
    StateKind.PROCESSING: frozenset({StateKind.PLAYING, StateKind.IDLE, StateKind.ERROR}),
    StateKind.PLAYING: frozenset({StateKind.PLAYING, StateKind.IDLE, StateKind.ERROR}),
    StateKind.ERROR: frozenset({StateKind.IDLE, StateKind.DISCONNECTED, StateKind.CONNECTING}),
}

_missing = set(StateKind) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"Transition table has no entry for: {sorted(k.value for k in _missing)}")


def is_valid_transition(current: VoiceInteractionState, new: VoiceInteractionState) -> bool:
    """Check whether ``current -> new`` is allowed."""
    if new.kind not in ALLOWED_TRANSITIONS[current.kind]:
        return False

    # Recovering from an error needs the session the error kept
    if current.kind == StateKind.ERROR and new.kind == StateKind.IDLE:
        return bool(current.session_id) and new.session_id == current.session_id

    # An error cannot introduce a session that was never issued
    if new.kind == StateKind.ERROR and current.session_id is None:
        return new.session_id is None

    if current.session_id and new.session_id and new.session_id != current.session_id:
        return False

    if isinstance(current, Recording) and isinstance(new, Recording):
        return new.buffered_bytes >= current.buffered_bytes

    return True


class VoiceStateMachine:
    """Holds the current interaction state and enforces valid transitions."""

    def __init__(
        self,
        initial: VoiceInteractionState | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        """
        Initialize state machine.

        Args:
            initial: Starting state (default: Disconnected)
            on_state_change: Called with (old, new) after every applied transition
        """
        self._state: VoiceInteractionState = initial or Disconnected()
        self._lock = threading.Lock()
        self.on_state_change = on_state_change

        # Most recent rejections only; the count covers the whole lifetime
        self.rejected_transitions: deque[tuple[VoiceInteractionState, VoiceInteractionState]] = (
            deque(maxlen=MAX_REJECTED_HISTORY)
        )
        self._rejection_count = 0

    @property
    def state(self) -> VoiceInteractionState:
        return self._state

    @property
    def rejection_count(self) -> int:
        return self._rejection_count

    def transition_to(self, new: VoiceInteractionState) -> bool:
        """
        Apply a transition if it is valid.

        Args:
            new: Requested state

        Returns:
            True if applied, False if rejected (state unchanged)
        """
        with self._lock:
            old = self._state
            if not is_valid_transition(old, new):
                self.rejected_transitions.append((old, new))
                self._rejection_count += 1
                logger.warning(f"Invalid state transition: {old} -> {new}")
                return False
            self._state = new

        if old.kind != new.kind:
            logger.info(f"State transition: {old} -> {new}")
        else:
            logger.debug(f"State update: {old} -> {new}")
        self._notify(old, new)
        return True

    def force_transition(self, new: VoiceInteractionState) -> None:
        """Apply a transition without validation (error and teardown paths)."""
        with self._lock:
            old = self._state
            self._state = new

        logger.warning(f"Forced state transition: {old} -> {new}")
        self._notify(old, new)

    def _notify(self, old: VoiceInteractionState, new: VoiceInteractionState) -> None:
        if self.on_state_change is not None:
            self.on_state_change(old, new)

    # === Derived queries ===

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    @property
    def can_start_recording(self) -> bool:
        return self._state.can_start_recording

    @property
    def is_recording(self) -> bool:
        return self._state.is_recording

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def can_cancel(self) -> bool:
        return self._state.can_cancel

    @property
    def display_text(self) -> str:
        return self._state.display_text

    @property
    def error_message(self) -> str | None:
        return self._state.error_message
