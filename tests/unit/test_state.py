"""Tests for voice interaction state variants."""

import pytest
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
    format_bytes,
)

SESSION = "sess_abcdef123456"


class TestFormatBytes:
    """Tests for byte size formatting."""

    def test_bytes(self) -> None:
        """Sizes below 1KB are shown in bytes."""
        assert format_bytes(0) == "0B"
        assert format_bytes(1023) == "1023B"

    def test_kilobytes(self) -> None:
        """Kilobytes use integer division."""
        assert format_bytes(1024) == "1KB"
        assert format_bytes(48000) == "46KB"

    def test_megabytes(self) -> None:
        """Megabytes use integer division."""
        assert format_bytes(1024 * 1024) == "1MB"
        assert format_bytes(3 * 1024 * 1024 + 5) == "3MB"


class TestStateConstruction:
    """Tests for variant construction rules."""

    @pytest.mark.parametrize("cls", [Idle, Recording, Processing, Playing])
    def test_session_required(self, cls: type) -> None:
        """Session-bearing variants reject an empty session id."""
        with pytest.raises(ValueError):
            cls("")

    def test_negative_bytes_rejected(self) -> None:
        """Recording rejects a negative byte count."""
        with pytest.raises(ValueError):
            Recording(SESSION, buffered_bytes=-1)

    def test_error_without_session(self) -> None:
        """Error may drop the session."""
        error = Error(None, "gone")
        assert error.session_id is None
        assert not error.is_recoverable

    def test_error_with_session_is_recoverable(self) -> None:
        """Error keeping the session can be recovered."""
        assert Error(SESSION, "server hiccup").is_recoverable

    def test_states_are_immutable(self) -> None:
        """Variants are frozen."""
        state = Recording(SESSION, 10)
        with pytest.raises(AttributeError):
            state.buffered_bytes = 20  # type: ignore[misc]

    def test_value_equality(self) -> None:
        """Variants compare by value."""
        assert Idle(SESSION) == Idle(SESSION)
        assert Recording(SESSION, 1) != Recording(SESSION, 2)
        assert Disconnected() == Disconnected()


class TestDerivedQueries:
    """Tests for state queries."""

    def test_kinds(self) -> None:
        """Each variant reports its kind."""
        assert Disconnected().kind == StateKind.DISCONNECTED
        assert Connecting().kind == StateKind.CONNECTING
        assert ConnectionFailed("x").kind == StateKind.CONNECTION_FAILED
        assert Idle(SESSION).kind == StateKind.IDLE
        assert Error(None, "x").kind == StateKind.ERROR

    def test_connected_states(self) -> None:
        """Only session states past setup count as connected."""
        assert Idle(SESSION).is_connected
        assert Recording(SESSION).is_connected
        assert Processing(SESSION).is_connected
        assert Playing(SESSION).is_connected
        assert not Disconnected().is_connected
        assert not Connecting().is_connected
        assert not Error(SESSION, "x").is_connected

    def test_recording_allowed_only_when_idle(self) -> None:
        """can_start_recording holds only in Idle."""
        assert Idle(SESSION).can_start_recording
        assert not Recording(SESSION).can_start_recording
        assert not Playing(SESSION).can_start_recording
        assert not Disconnected().can_start_recording

    def test_active_and_cancel(self) -> None:
        """Recording, processing and playing are active and cancellable."""
        for state in (Recording(SESSION), Processing(SESSION), Playing(SESSION)):
            assert state.is_active
            assert state.can_cancel
        assert not Idle(SESSION).is_active
        assert not Error(SESSION, "x").can_cancel

    def test_session_id_absent_before_connect(self) -> None:
        """Setup states carry no session id."""
        assert Disconnected().session_id is None
        assert Connecting().session_id is None
        assert ConnectionFailed("x").session_id is None

    def test_error_message(self) -> None:
        """Failure states expose their message."""
        assert ConnectionFailed("timeout").error_message == "timeout"
        assert Error(None, "boom").error_message == "boom"
        assert Idle(SESSION).error_message is None


class TestDisplayText:
    """Tests for user-facing text."""

    def test_setup_states(self) -> None:
        """Setup states have fixed text."""
        assert Disconnected().display_text == "Disconnected"
        assert Connecting().display_text == "Connecting..."
        assert ConnectionFailed("no key").display_text == "Failed: no key"

    def test_recording_shows_size(self) -> None:
        """Recording text includes the buffered size once non-zero."""
        assert Recording(SESSION).display_text == "Listening..."
        assert Recording(SESSION, 4800).display_text == "Listening... (4KB)"

    def test_playing_shows_chunks(self) -> None:
        """Playing text includes the chunk count once non-zero."""
        assert Playing(SESSION).display_text == "Playing..."
        assert Playing(SESSION, 3).display_text == "Playing... (3 chunks)"

    def test_error_text(self) -> None:
        """Error text prefixes the message."""
        assert Error(SESSION, "Connection lost").display_text == "Error: Connection lost"

    def test_str_abbreviates_session(self) -> None:
        """Debug strings show an 8-character session prefix."""
        assert str(Idle(SESSION)) == "idle(session: sess_abc...)"
        assert str(Error(None, "x")) == "error(x)"
