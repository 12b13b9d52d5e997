"""
Voice interaction controller.

Ties the state machine, the audio service and the Voice Live client
together:

    idle -> recording -> processing -> playing -> idle

Recording streams 100ms chunks to the service; committing (manually or
through server VAD) moves to processing; response audio deltas are
decoded and played; when playback drains and the response is complete
the interaction returns to idle.

Server ``error`` events move to a recoverable Error(session) state.
Transport failures move to a fatal Error(None) state that only a
disconnect (or reconnect) leaves.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from remind.audio.service import AudioService, AudioServiceError
from remind.config.settings_store import SettingsStore
from remind.core.logging import get_logger
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
from remind.voice.state_machine import VoiceStateMachine, is_valid_transition
from remind.voicelive.client import (
    TRANSPORT_ERROR_TYPE,
    BufferTooSmallError,
    VoiceLiveClient,
    VoiceLiveError,
)
from remind.voicelive.server_events import (
    ConversationItemTranscriptionCompletedEvent,
    ConversationItemTranscriptionDeltaEvent,
    ErrorEvent,
    InputAudioBufferCommittedEvent,
    InputAudioBufferSpeechStartedEvent,
    InputAudioBufferSpeechStoppedEvent,
    ResponseAudioDeltaEvent,
    ResponseAudioDoneEvent,
    ResponseAudioTranscriptDeltaEvent,
    ResponseAudioTranscriptDoneEvent,
    ResponseCreatedEvent,
    ResponseDoneEvent,
    ServerEvent,
    SessionUpdatedEvent,
    UnknownEvent,
)

if TYPE_CHECKING:
    from remind.audio.service import ChunkStream
    from remind.config.schema import RemindConfig, VoiceLiveConfig

logger = get_logger("voice.controller")

ClientFactory = Callable[["VoiceLiveConfig"], VoiceLiveClient]
AudioFactory = Callable[[], AudioService]


@dataclass
class VoiceCallbacks:
    """Callbacks for voice interaction events."""

    on_state_change: Callable[[VoiceInteractionState], None] | None = None
    on_transcript: Callable[[str, str], None] | None = None  # (role, text)
    on_transcript_delta: Callable[[str, str], None] | None = None  # (role, delta)
    on_error: Callable[[str], None] | None = None


async def _cancel_task(task: asyncio.Task[None] | None) -> None:
    if task is None or task is asyncio.current_task():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


class VoiceController:
    """
    Orchestrates one voice companion session.

    All public methods are coroutines and must run on the same event loop.
    ``toggle()`` is the single user intent (the microphone tap).
    """

    def __init__(
        self,
        config: RemindConfig,
        settings: SettingsStore | None = None,
        callbacks: VoiceCallbacks | None = None,
        client_factory: ClientFactory | None = None,
        audio_factory: AudioFactory | None = None,
    ) -> None:
        """
        Initialize controller.

        Args:
            config: Application configuration
            settings: Voice settings store (default: persisted under config_dir)
            callbacks: Optional event callbacks
            client_factory: Builds a Voice Live client per connection
            audio_factory: Builds an audio service per connection
        """
        self._config = config
        self._settings = settings or SettingsStore(config.settings_path, config.voice)
        self._callbacks = callbacks or VoiceCallbacks()
        self._client_factory = client_factory or VoiceLiveClient
        self._audio_factory = audio_factory or (lambda: AudioService(config=config.audio))

        self._state_machine = VoiceStateMachine(on_state_change=self._on_state_change)

        self._client: VoiceLiveClient | None = None
        self._audio: AudioService | None = None

        # Background tasks
        self._event_task: asyncio.Task[None] | None = None
        self._playback_task: asyncio.Task[None] | None = None
        self._forward_task: asyncio.Task[None] | None = None

        self._recorded_bytes = 0
        self._response_pending = False
        self._cancelled_responses: set[str] = set()
        self._current_response_id: str | None = None
        self._cancel_next_response = False

    @property
    def state(self) -> VoiceInteractionState:
        return self._state_machine.state

    @property
    def state_machine(self) -> VoiceStateMachine:
        return self._state_machine

    @property
    def display_text(self) -> str:
        return self._state_machine.display_text

    @property
    def client(self) -> VoiceLiveClient | None:
        return self._client

    @property
    def audio(self) -> AudioService | None:
        return self._audio

    def set_callbacks(self, callbacks: VoiceCallbacks) -> None:
        self._callbacks = callbacks

    # === Connection ===

    async def connect(self) -> bool:
        """
        Connect to Voice Live and configure the session.

        Returns:
            True once idle, False if the connection failed
        """
        state = self.state
        if state.is_connected or state.kind == StateKind.CONNECTING:
            logger.warning(f"Connect ignored in state {state}")
            return state.is_connected

        if self._client is not None or self._audio is not None:
            await self._teardown()

        if not self._state_machine.transition_to(Connecting()):
            return False

        error = self._config.voicelive.validate_settings()
        if error:
            logger.error(f"Invalid Voice Live configuration: {error}")
            self._state_machine.transition_to(ConnectionFailed(error))
            return False

        settings = self._settings.snapshot()
        client = self._client_factory(self._config.voicelive)
        self._client = client
        self._audio = self._audio_factory()

        try:
            await client.connect()
            self._event_task = asyncio.create_task(self._process_events(client))
            session_id = await client.wait_for_session()
            await client.update_session(settings.to_session())
        except VoiceLiveError as e:
            logger.error(f"Connection failed: {e}")
            await self._teardown()
            self._set_state(ConnectionFailed(str(e)))
            return False

        self._playback_task = asyncio.create_task(self._observe_playback(self._audio))

        if not self._state_machine.transition_to(Idle(session_id)):
            # An error event arrived while the session was being configured
            return False

        logger.info(f"Voice session ready: {session_id}")
        return True

    async def disconnect(self) -> None:
        """Stop all audio, close the connection and return to Disconnected."""
        await self._teardown()
        if self.state.kind != StateKind.DISCONNECTED:
            self._set_state(Disconnected())

    # === Interaction ===

    async def start_recording(self) -> bool:
        """Start capturing and streaming microphone audio (idle only)."""
        state = self.state
        if not isinstance(state, Idle) or self._audio is None or self._client is None:
            logger.warning(f"Cannot start recording in state {state}")
            return False

        session_id = state.session_id
        if not self._state_machine.transition_to(Recording(session_id, 0)):
            return False

        self._recorded_bytes = 0
        try:
            stream = await self._audio.start_capture()
        except AudioServiceError as e:
            logger.error(f"Failed to start capture: {e}")
            await self._enter_error(session_id, str(e))
            return False

        self._forward_task = asyncio.create_task(self._forward_chunks(stream, session_id))
        return True

    async def stop_recording(self) -> None:
        """Stop capturing and commit the utterance."""
        state = self.state
        if not isinstance(state, Recording):
            logger.warning(f"Cannot stop recording in state {state}")
            return

        session_id = state.session_id
        await self._finish_capture()

        # Server VAD may already have committed while capture drained
        if not isinstance(self.state, Recording) or self._client is None:
            return

        try:
            await self._client.commit_audio_buffer()
        except BufferTooSmallError as e:
            logger.warning(f"Recording too short: {e}")
            await self._clear_remote_buffer()
            self._state_machine.transition_to(Idle(session_id))
            return
        except VoiceLiveError as e:
            logger.error(f"Failed to commit audio: {e}")
            await self._enter_error(session_id, str(e))
            return

        self._response_pending = True
        self._state_machine.transition_to(Processing(session_id))

    async def cancel_interaction(self) -> None:
        """Abort recording, processing or playback and return to idle."""
        state = self.state
        if not state.can_cancel or state.session_id is None:
            logger.debug(f"Nothing to cancel in state {state}")
            return

        session_id = state.session_id
        logger.info("Cancelling interaction")

        await _cancel_task(self._forward_task)
        self._forward_task = None
        if self._audio is not None:
            await self._audio.stop_capture()
            await self._audio.stop_playback()

        if self._client is not None:
            if self._response_pending or self._client.response_in_progress:
                if self._current_response_id is not None:
                    self._cancelled_responses.add(self._current_response_id)
                else:
                    # Response not created yet; drop it when it is
                    self._cancel_next_response = True
                try:
                    await self._client.cancel_response()
                except VoiceLiveError as e:
                    logger.warning(f"Failed to cancel response: {e}")
            await self._clear_remote_buffer()

        self._response_pending = False
        self._state_machine.transition_to(Idle(session_id))

    async def recover(self) -> None:
        """Leave the error state: back to idle if the session survived, else disconnect."""
        state = self.state
        if not isinstance(state, Error):
            return

        if state.is_recoverable and self._client is not None and self._client.is_connected:
            self._state_machine.transition_to(Idle(state.session_id))
        else:
            await self.disconnect()

    async def toggle(self) -> None:
        """Single tap intent, dispatched on the current state."""
        kind = self.state.kind
        if kind == StateKind.IDLE:
            await self.start_recording()
        elif kind == StateKind.RECORDING:
            await self.stop_recording()
        elif kind in (StateKind.PROCESSING, StateKind.PLAYING):
            await self.cancel_interaction()
        elif kind == StateKind.ERROR:
            await self.recover()
        elif kind in (StateKind.DISCONNECTED, StateKind.CONNECTION_FAILED):
            await self.connect()
        else:
            logger.debug(f"Tap ignored while {self.state}")

    # === Background tasks ===

    async def _forward_chunks(self, stream: ChunkStream, session_id: str) -> None:
        """Send captured chunks in order and refresh the recording byte count."""
        client = self._client
        if client is None:
            return

        async for chunk in stream:
            try:
                await client.send_audio_chunk(chunk)
            except VoiceLiveError as e:
                logger.error(f"Failed to send audio: {e}")
                await self._enter_error(session_id, str(e))
                return

            self._recorded_bytes += len(chunk)
            if isinstance(self.state, Recording):
                self._state_machine.transition_to(Recording(session_id, self._recorded_bytes))

    async def _process_events(self, client: VoiceLiveClient) -> None:
        """Background task dispatching inbound events."""
        logger.debug("Event processing started")
        try:
            async for event in client.events():
                await self._handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Event processing failed: {e}")
            await self._enter_error(None, str(e))
        logger.debug("Event processing finished")

    async def _observe_playback(self, audio: AudioService) -> None:
        """Background task following playback activity."""
        async for playing in audio.playback_states():
            state = self.state
            if playing:
                if isinstance(state, (Processing, Playing)):
                    self._state_machine.transition_to(
                        Playing(state.session_id, audio.active_buffer_count)
                    )
            elif isinstance(state, Playing) and not self._response_pending:
                logger.info("Playback finished")
                self._state_machine.transition_to(Idle(state.session_id))

    # === Event handling ===

    async def _handle_event(self, event: ServerEvent) -> None:
        if isinstance(event, ErrorEvent):
            await self._handle_error_event(event)
        elif isinstance(event, SessionUpdatedEvent):
            logger.info("Session configuration applied")
        elif isinstance(event, InputAudioBufferSpeechStartedEvent):
            logger.debug(f"Speech started at {event.audio_start_ms}ms")
        elif isinstance(event, InputAudioBufferSpeechStoppedEvent):
            logger.info(f"Speech stopped at {event.audio_end_ms}ms")
            await self._server_committed()
        elif isinstance(event, InputAudioBufferCommittedEvent):
            logger.debug(f"Audio buffer committed: {event.item_id}")
            await self._server_committed()
        elif isinstance(event, ResponseCreatedEvent):
            if self._cancel_next_response:
                self._cancel_next_response = False
                self._cancelled_responses.add(event.response.id)
                return
            self._current_response_id = event.response.id
            self._response_pending = True
        elif isinstance(event, ResponseAudioDeltaEvent):
            await self._handle_audio_delta(event)
        elif isinstance(event, (ResponseAudioDoneEvent, ResponseDoneEvent)):
            response_id = (
                event.response.id if isinstance(event, ResponseDoneEvent) else event.response_id
            )
            if response_id in self._cancelled_responses:
                if isinstance(event, ResponseDoneEvent):
                    self._cancelled_responses.discard(response_id)
                return
            self._response_pending = False
            if isinstance(event, ResponseDoneEvent):
                self._current_response_id = None
            self._finish_response_if_drained()
        elif isinstance(event, ResponseAudioTranscriptDeltaEvent):
            self._emit_transcript_delta("assistant", event.delta)
        elif isinstance(event, ResponseAudioTranscriptDoneEvent):
            self._emit_transcript("assistant", event.transcript)
        elif isinstance(event, ConversationItemTranscriptionDeltaEvent):
            self._emit_transcript_delta("user", event.delta)
        elif isinstance(event, ConversationItemTranscriptionCompletedEvent):
            self._emit_transcript("user", event.transcript)
        elif isinstance(event, UnknownEvent):
            logger.debug(f"Unhandled event type: {event.type}")

    async def _handle_error_event(self, event: ErrorEvent) -> None:
        message = event.error.message
        if event.error.type == TRANSPORT_ERROR_TYPE:
            logger.error(f"Connection lost: {message}")
            await self._enter_error(None, message)
            return

        logger.error(f"Voice Live error ({event.error.type}/{event.error.code}): {message}")
        state = self.state
        if state.kind in (StateKind.CONNECTING, StateKind.DISCONNECTED):
            # Connection setup reports its own failure
            return
        await self._enter_error(state.session_id, message)

    async def _server_committed(self) -> None:
        state = self.state
        if not isinstance(state, Recording):
            return
        await self._finish_capture()
        self._response_pending = True
        if isinstance(self.state, Recording):
            self._state_machine.transition_to(Processing(state.session_id))

    async def _handle_audio_delta(self, event: ResponseAudioDeltaEvent) -> None:
        if event.response_id in self._cancelled_responses:
            return

        state = self.state
        if not isinstance(state, (Processing, Playing)) or self._audio is None:
            logger.debug(f"Dropping response audio in state {state}")
            return

        try:
            data = base64.b64decode(event.delta, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Invalid audio delta: {e}")
            return

        try:
            await self._audio.play_audio(data)
        except AudioServiceError as e:
            logger.error(f"Playback failed: {e}")
            await self._enter_error(state.session_id, str(e))
            return

        self._state_machine.transition_to(
            Playing(state.session_id, self._audio.active_buffer_count)
        )

    def _finish_response_if_drained(self) -> None:
        state = self.state
        if self._response_pending or not isinstance(state, (Processing, Playing)):
            return
        if self._audio is not None and self._audio.is_playing:
            return
        logger.info("Response complete")
        self._state_machine.transition_to(Idle(state.session_id))

    # === Helpers ===

    async def _finish_capture(self) -> None:
        """Stop capture and wait for the remaining chunks to be sent."""
        if self._audio is not None:
            await self._audio.stop_capture()
        task, self._forward_task = self._forward_task, None
        if task is not None and task is not asyncio.current_task():
            await task

    async def _clear_remote_buffer(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.clear_audio_buffer()
        except VoiceLiveError as e:
            logger.warning(f"Failed to clear audio buffer: {e}")

    async def _enter_error(self, session_id: str | None, message: str) -> None:
        """Stop all audio and force the error state."""
        await _cancel_task(self._forward_task)
        self._forward_task = None
        if self._audio is not None:
            await self._audio.stop_capture()
            await self._audio.stop_playback()
            self._audio.buffers.clear()

        self._response_pending = False
        self._state_machine.force_transition(Error(session_id, message))

        if self._callbacks.on_error:
            self._callbacks.on_error(message)

    async def _teardown(self) -> None:
        await _cancel_task(self._forward_task)
        await _cancel_task(self._playback_task)
        await _cancel_task(self._event_task)
        self._forward_task = None
        self._playback_task = None
        self._event_task = None

        if self._audio is not None:
            await self._audio.close()
            self._audio.buffers.clear()
            self._audio = None

        if self._client is not None:
            await self._client.disconnect()
            self._client = None

        self._response_pending = False
        self._current_response_id = None
        self._cancel_next_response = False
        self._cancelled_responses.clear()

    def _set_state(self, new: VoiceInteractionState) -> None:
        """Transition, forcing it when no valid edge exists."""
        if is_valid_transition(self.state, new):
            self._state_machine.transition_to(new)
        else:
            self._state_machine.force_transition(new)

    def _on_state_change(self, _old: VoiceInteractionState, new: VoiceInteractionState) -> None:
        if self._callbacks.on_state_change:
            self._callbacks.on_state_change(new)

    def _emit_transcript(self, role: str, text: str) -> None:
        logger.info(f"{role}: {text}")
        if self._callbacks.on_transcript:
            self._callbacks.on_transcript(role, text)

    def _emit_transcript_delta(self, role: str, delta: str) -> None:
        if self._callbacks.on_transcript_delta:
            self._callbacks.on_transcript_delta(role, delta)
