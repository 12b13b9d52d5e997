"""
WebSocket client for the Azure Voice Live realtime API.

Owns one connection epoch: opens the socket, decodes inbound messages
into typed events on an ordered stream, and translates local intents
(append/commit/clear audio, conversation items, responses, tool
approvals) into client events.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from remind.audio.format import pcm16_duration_ms
from remind.core.logging import get_logger
from remind.voicelive.client_events import (
    ClientEvent,
    ConversationItemCreateEvent,
    ConversationItemDeleteEvent,
    ConversationItemRetrieveEvent,
    ConversationItemTruncateEvent,
    InputAudioBufferAppendEvent,
    InputAudioBufferClearEvent,
    InputAudioBufferCommitEvent,
    McpApprovalResponseEvent,
    ResponseCancelEvent,
    ResponseCreateEvent,
    SessionUpdateEvent,
)
from remind.voicelive.models import (
    ConversationRequestItem,
    ErrorDetails,
    RequestSession,
    ResponseOptions,
)
from remind.voicelive.server_events import (
    ErrorEvent,
    ResponseCreatedEvent,
    ResponseDoneEvent,
    ServerEvent,
    ServerEventDecodeError,
    SessionCreatedEvent,
    SessionUpdatedEvent,
    parse_server_event,
)

if TYPE_CHECKING:
    from remind.config.schema import VoiceLiveConfig

logger = get_logger("voicelive.client")

# The service rejects commits shorter than this
MIN_COMMIT_DURATION_MS = 100.0

# Error type used for synthetic errors raised by the transport itself
TRANSPORT_ERROR_TYPE = "transport_error"


class VoiceLiveError(Exception):
    """Base class for Voice Live client errors."""


class VoiceLiveConnectionError(VoiceLiveError):
    """The WebSocket could not be opened or was lost while sending."""


class VoiceLiveStateError(VoiceLiveError):
    """The request is not allowed in the current connection/session state."""


class VoiceLiveTimeoutError(VoiceLiveError):
    """Timed out waiting for the service."""


class VoiceLiveEncodingError(VoiceLiveError):
    """A client event could not be serialized."""


class BufferTooSmallError(VoiceLiveError):
    """Not enough audio has been appended to commit."""

    def __init__(self, duration_ms: float, byte_count: int, minimum_ms: float) -> None:
        super().__init__(
            f"Audio buffer too small: {duration_ms:.1f}ms of audio ({byte_count} bytes). "
            f"Minimum required: {minimum_ms:.0f}ms. Please speak for longer."
        )
        self.duration_ms = duration_ms
        self.byte_count = byte_count
        self.minimum_ms = minimum_ms


class ConnectionState(Enum):
    """Transport connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class AudioBufferStatistics:
    """Audio appended to the remote input buffer since the last commit/clear."""

    byte_count: int
    chunk_count: int
    duration_ms: float


Connector = Callable[..., Awaitable[Any]]


class VoiceLiveClient:
    """
    Client for one Voice Live connection epoch.

    Inbound messages are decoded in a background reader task and pushed,
    in arrival order, onto an event stream consumed through ``events()``.
    The stream ends when the client disconnects or the transport fails
    (a synthetic ``ErrorEvent`` is pushed first in the latter case).
    """

    def __init__(
        self,
        config: VoiceLiveConfig,
        connector: Connector | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Endpoint, credentials and timeouts
            connector: Coroutine factory opening the WebSocket
                (defaults to ``websockets.connect``)
        """
        self._config = config
        self._connector = connector or websockets.connect

        self._websocket: Any = None
        self._recv_task: asyncio.Task[None] | None = None
        self._events: asyncio.Queue[ServerEvent | None] = asyncio.Queue()
        self._events_finished = False
        self._closing = False

        self._state = ConnectionState.DISCONNECTED
        self._session_id: str | None = None
        self._session_ready = asyncio.Event()
        self._connection_lost = asyncio.Event()
        self._response_in_progress = False

        self._buffer_bytes = 0
        self._buffer_chunks = 0

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def is_session_ready(self) -> bool:
        return self._session_ready.is_set()

    @property
    def response_in_progress(self) -> bool:
        return self._response_in_progress

    # === Connection ===

    async def connect(self) -> None:
        """
        Open the WebSocket and start decoding inbound events.

        Raises:
            VoiceLiveConnectionError: If the socket cannot be opened
        """
        if self._state == ConnectionState.CONNECTED:
            logger.warning("Already connected")
            return

        url = self._config.websocket_url
        if url is None:
            self._state = ConnectionState.ERROR
            raise VoiceLiveConnectionError("Invalid WebSocket URL")

        self._state = ConnectionState.CONNECTING
        self._reset_epoch()
        logger.info(f"Connecting to Voice Live: {self._config.resource_name}")

        try:
            self._websocket = await asyncio.wait_for(
                self._connector(
                    url,
                    additional_headers={"api-key": self._config.api_key},
                    max_size=None,
                ),
                timeout=self._config.connect_timeout_seconds,
            )
        except Exception as e:
            self._state = ConnectionState.ERROR
            logger.error(f"Failed to connect to Voice Live: {e}")
            raise VoiceLiveConnectionError(str(e) or type(e).__name__) from e

        self._state = ConnectionState.CONNECTED
        self._recv_task = asyncio.create_task(self._recv_loop())
        logger.info("Connected to Voice Live")

    async def wait_for_session(self, timeout: float | None = None) -> str:
        """
        Wait for ``session.created`` and return the session id.

        Raises:
            VoiceLiveTimeoutError: If no session arrives in time
            VoiceLiveConnectionError: If the connection drops while waiting
            VoiceLiveStateError: If not connected
        """
        self._require_connected()
        timeout = timeout if timeout is not None else self._config.session_timeout_seconds

        ready = asyncio.ensure_future(self._session_ready.wait())
        lost = asyncio.ensure_future(self._connection_lost.wait())
        try:
            await asyncio.wait({ready, lost}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
            lost.cancel()

        if not self._session_ready.is_set():
            if self._connection_lost.is_set():
                raise VoiceLiveConnectionError("Connection lost before the session was created")
            logger.error(f"Timeout waiting for session ({timeout}s)")
            raise VoiceLiveTimeoutError(f"No session created within {timeout}s")

        if not self._session_id:
            raise VoiceLiveStateError("Session ready without an id")
        return self._session_id

    async def disconnect(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._state == ConnectionState.DISCONNECTED and self._websocket is None:
            self._finish_events()
            return

        logger.info("Disconnecting from Voice Live")
        self._closing = True

        if self._recv_task:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            self._recv_task = None

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
            self._websocket = None

        self._state = ConnectionState.DISCONNECTED
        self._session_id = None
        self._session_ready.clear()
        self._response_in_progress = False
        self._reset_buffer_statistics()
        self._finish_events()

        logger.info("Disconnected from Voice Live")

    async def events(self) -> AsyncIterator[ServerEvent]:
        """Yield decoded inbound events in arrival order until the stream ends."""
        queue = self._events
        while True:
            event = await queue.get()
            if event is None:
                return
            yield event

    # === Session ===

    async def update_session(self, session: RequestSession) -> None:
        """Send session configuration. Not allowed while a response is in progress."""
        self._require_connected()
        if self._response_in_progress:
            raise VoiceLiveStateError("Cannot update session while a response is in progress")

        logger.info("Sending session.update")
        await self._send(SessionUpdateEvent(session=session))

    # === Audio buffer ===

    async def send_audio_chunk(self, data: bytes) -> None:
        """Append PCM16 audio to the remote input buffer."""
        self._require_session()

        self._buffer_bytes += len(data)
        self._buffer_chunks += 1

        audio = base64.b64encode(data).decode("ascii")
        await self._send(InputAudioBufferAppendEvent(audio=audio))

    async def commit_audio_buffer(self) -> None:
        """
        Commit the remote input buffer as a complete utterance.

        Raises:
            BufferTooSmallError: If less than 100ms of audio was appended
        """
        self._require_session()

        stats = self.audio_buffer_statistics()
        if stats.duration_ms < MIN_COMMIT_DURATION_MS:
            logger.error(
                f"Audio buffer too small: {stats.duration_ms:.1f}ms "
                f"(minimum: {MIN_COMMIT_DURATION_MS:.0f}ms), "
                f"{stats.byte_count} bytes, {stats.chunk_count} chunks"
            )
            raise BufferTooSmallError(stats.duration_ms, stats.byte_count, MIN_COMMIT_DURATION_MS)

        logger.info(
            f"Committing audio buffer: {stats.duration_ms:.0f}ms, "
            f"{stats.byte_count} bytes, {stats.chunk_count} chunks"
        )
        await self._send(InputAudioBufferCommitEvent())
        self._reset_buffer_statistics()

    async def clear_audio_buffer(self) -> None:
        """Discard the remote input buffer."""
        self._require_connected()

        logger.info("Clearing audio buffer")
        self._reset_buffer_statistics()
        await self._send(InputAudioBufferClearEvent())

    def audio_buffer_statistics(self) -> AudioBufferStatistics:
        return AudioBufferStatistics(
            byte_count=self._buffer_bytes,
            chunk_count=self._buffer_chunks,
            duration_ms=pcm16_duration_ms(self._buffer_bytes),
        )

    # === Conversation items ===

    async def create_conversation_item(
        self,
        item: ConversationRequestItem,
        previous_item_id: str | None = None,
    ) -> None:
        self._require_session()
        logger.info("Creating conversation item")
        await self._send(ConversationItemCreateEvent(previous_item_id=previous_item_id, item=item))

    async def retrieve_conversation_item(self, item_id: str) -> None:
        self._require_session()
        logger.info(f"Retrieving conversation item: {item_id}")
        await self._send(ConversationItemRetrieveEvent(item_id=item_id))

    async def truncate_conversation_item(
        self,
        item_id: str,
        content_index: int,
        audio_end_ms: int,
    ) -> None:
        """Truncate assistant audio that was not played back."""
        self._require_session()
        logger.info(
            f"Truncating conversation item: {item_id} at content index "
            f"{content_index}, audio end: {audio_end_ms}ms"
        )
        await self._send(
            ConversationItemTruncateEvent(
                item_id=item_id,
                content_index=content_index,
                audio_end_ms=audio_end_ms,
            )
        )

    async def delete_conversation_item(self, item_id: str) -> None:
        self._require_session()
        logger.info(f"Deleting conversation item: {item_id}")
        await self._send(ConversationItemDeleteEvent(item_id=item_id))

    # === Responses ===

    async def create_response(self, options: ResponseOptions | None = None) -> None:
        """Trigger response generation manually (when turn detection is off)."""
        self._require_session()
        logger.info("Creating response")
        await self._send(ResponseCreateEvent(response=options))

    async def cancel_response(self) -> None:
        self._require_connected()
        logger.info("Canceling response")
        await self._send(ResponseCancelEvent())

    async def send_tool_approval(self, approve: bool, approval_request_id: str) -> None:
        self._require_session()
        logger.info(f"Sending tool approval: {approve} for request {approval_request_id}")
        await self._send(
            McpApprovalResponseEvent(approve=approve, approval_request_id=approval_request_id)
        )

    # === Internals ===

    def _require_connected(self) -> None:
        if self._state != ConnectionState.CONNECTED or self._websocket is None:
            raise VoiceLiveStateError("Not connected to Voice Live")

    def _require_session(self) -> None:
        self._require_connected()
        if not self._session_ready.is_set():
            raise VoiceLiveStateError("Session not ready")

    def _reset_epoch(self) -> None:
        self._events = asyncio.Queue()
        self._events_finished = False
        self._closing = False
        self._session_id = None
        self._session_ready.clear()
        self._connection_lost.clear()
        self._response_in_progress = False
        self._reset_buffer_statistics()

    def _reset_buffer_statistics(self) -> None:
        self._buffer_bytes = 0
        self._buffer_chunks = 0

    def _finish_events(self) -> None:
        if not self._events_finished:
            self._events_finished = True
            self._events.put_nowait(None)

    async def _send(self, event: ClientEvent) -> None:
        try:
            payload = event.to_json()
        except (ValidationError, ValueError, TypeError) as e:
            raise VoiceLiveEncodingError(f"Failed to encode {event.type}: {e}") from e

        try:
            await self._websocket.send(payload)
        except ConnectionClosed as e:
            logger.error(f"Failed to send {event.type}: {e}")
            raise VoiceLiveConnectionError(f"Connection closed while sending {event.type}") from e

    async def _recv_loop(self) -> None:
        """Background task decoding inbound messages."""
        logger.debug("Voice Live recv_loop started")
        reason = "transport closed"
        try:
            async for message in self._websocket:
                self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            reason = f"transport closed: {e}"
        except Exception as e:
            logger.warning(f"Receive error: {e}")
            reason = f"transport error: {e}"

        if not self._closing:
            logger.error(f"Voice Live connection lost ({reason})")
            self._state = ConnectionState.ERROR
            self._session_ready.clear()
            self._connection_lost.set()
            self._push_transport_error(reason)
            self._finish_events()
        logger.debug("Voice Live recv_loop exiting")

    def _handle_message(self, message: str | bytes) -> None:
        try:
            event = parse_server_event(message)
        except ServerEventDecodeError as e:
            logger.error(f"Failed to decode event: {e}")
            logger.error(f"Raw JSON: {e.raw[:500]}")
            return

        if isinstance(event, SessionCreatedEvent):
            self._session_id = event.session.id
            self._reset_buffer_statistics()
            self._session_ready.set()
            logger.info(f"Session created: {event.session.id}")
        elif isinstance(event, SessionUpdatedEvent):
            self._reset_buffer_statistics()
            self._session_ready.set()
            logger.info("Session updated")
        elif isinstance(event, ResponseCreatedEvent):
            self._response_in_progress = True
        elif isinstance(event, ResponseDoneEvent):
            self._response_in_progress = False

        self._events.put_nowait(event)

    def _push_transport_error(self, reason: str) -> None:
        self._events.put_nowait(
            ErrorEvent(
                type="error",
                event_id=str(uuid4()),
                error=ErrorDetails(
                    type=TRANSPORT_ERROR_TYPE,
                    code=TRANSPORT_ERROR_TYPE,
                    message=reason,
                ),
            )
        )
