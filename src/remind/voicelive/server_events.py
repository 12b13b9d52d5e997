"""
Server events received from the Voice Live service.

Inbound messages are decoded by dispatching on the ``type`` field.
Unrecognized types decode to ``UnknownEvent`` so that protocol additions
never break the event stream; a known type with a malformed payload
raises ``ServerEventDecodeError``.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import Field, ValidationError

from remind.voicelive.models import (
    ContentPart,
    ConversationItem,
    ErrorDetails,
    RateLimit,
    Response,
    ResponseSession,
    WireModel,
)


class ServerEventDecodeError(ValueError):
    """Raised when an inbound message cannot be decoded."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class ServerEvent(WireModel):
    """Base class for inbound events."""

    type: str
    event_id: str | None = None


# === System ===


class ErrorEvent(ServerEvent):
    error: ErrorDetails


class RateLimitsUpdatedEvent(ServerEvent):
    rate_limits: list[RateLimit] = Field(default_factory=list)


# === Session ===


class SessionCreatedEvent(ServerEvent):
    session: ResponseSession


class SessionUpdatedEvent(ServerEvent):
    session: ResponseSession


class SessionAvatarConnectingEvent(ServerEvent):
    server_sdp: str


# === Input audio buffer ===


class InputAudioBufferCommittedEvent(ServerEvent):
    previous_item_id: str | None = None
    item_id: str


class InputAudioBufferClearedEvent(ServerEvent):
    pass


class InputAudioBufferSpeechStartedEvent(ServerEvent):
    audio_start_ms: int
    item_id: str


class InputAudioBufferSpeechStoppedEvent(ServerEvent):
    audio_end_ms: int
    item_id: str


# === Conversation items ===


class ConversationItemCreatedEvent(ServerEvent):
    previous_item_id: str | None = None
    item: ConversationItem


class ConversationItemRetrievedEvent(ServerEvent):
    item: ConversationItem


class ConversationItemTruncatedEvent(ServerEvent):
    item_id: str
    content_index: int
    audio_end_ms: int


class ConversationItemDeletedEvent(ServerEvent):
    item_id: str


class ConversationItemTranscriptionCompletedEvent(ServerEvent):
    item_id: str
    content_index: int
    transcript: str


class ConversationItemTranscriptionDeltaEvent(ServerEvent):
    item_id: str
    content_index: int
    delta: str


class ConversationItemTranscriptionFailedEvent(ServerEvent):
    item_id: str
    content_index: int
    error: dict[str, Any] | None = None


# === Response lifecycle ===


class ResponseCreatedEvent(ServerEvent):
    response: Response


class ResponseDoneEvent(ServerEvent):
    response: Response


class ResponseOutputItemAddedEvent(ServerEvent):
    response_id: str
    output_index: int
    item: ConversationItem


class ResponseOutputItemDoneEvent(ServerEvent):
    response_id: str
    output_index: int
    item: ConversationItem


class _ContentEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int
    content_index: int


class ResponseContentPartAddedEvent(_ContentEvent):
    part: ContentPart


class ResponseContentPartDoneEvent(_ContentEvent):
    part: ContentPart


# === Text / audio streaming ===


class ResponseTextDeltaEvent(_ContentEvent):
    delta: str


class ResponseTextDoneEvent(_ContentEvent):
    text: str


class ResponseAudioDeltaEvent(_ContentEvent):
    delta: str  # base64 PCM16


class ResponseAudioDoneEvent(_ContentEvent):
    pass


class ResponseAudioTranscriptDeltaEvent(_ContentEvent):
    delta: str


class ResponseAudioTranscriptDoneEvent(_ContentEvent):
    transcript: str


class ResponseAudioTimestampDeltaEvent(_ContentEvent):
    audio_offset_ms: int
    audio_duration_ms: int
    text: str
    timestamp_type: str


class ResponseAudioTimestampDoneEvent(_ContentEvent):
    pass


# === Animation ===


class ResponseAnimationBlendshapesDeltaEvent(_ContentEvent):
    frame_index: int
    frames: list[list[float]]


class ResponseAnimationBlendshapesDoneEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int


class ResponseAnimationVisemeDeltaEvent(_ContentEvent):
    audio_offset_ms: int
    viseme_id: int


class ResponseAnimationVisemeDoneEvent(_ContentEvent):
    pass


# === Function / tool calls ===


class ResponseFunctionCallArgumentsDeltaEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int
    call_id: str
    delta: str


class ResponseFunctionCallArgumentsDoneEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int
    call_id: str
    arguments: str


class ResponseMcpCallArgumentsDeltaEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int
    delta: str


class ResponseMcpCallArgumentsDoneEvent(ServerEvent):
    response_id: str
    item_id: str
    output_index: int
    arguments: str


class ResponseMcpCallInProgressEvent(ServerEvent):
    item_id: str
    output_index: int


class ResponseMcpCallCompletedEvent(ServerEvent):
    item_id: str
    output_index: int


class ResponseMcpCallFailedEvent(ServerEvent):
    item_id: str
    output_index: int


class McpListToolsInProgressEvent(ServerEvent):
    item_id: str


class McpListToolsCompletedEvent(ServerEvent):
    item_id: str


class McpListToolsFailedEvent(ServerEvent):
    item_id: str


# === Fallback ===


class UnknownEvent(ServerEvent):
    """Event with a type this client does not recognize."""

    payload: dict[str, Any] = Field(default_factory=dict)


SERVER_EVENT_TYPES: dict[str, type[ServerEvent]] = {
    # Session
    "session.created": SessionCreatedEvent,
    "session.updated": SessionUpdatedEvent,
    "session.avatar.connecting": SessionAvatarConnectingEvent,
    # Input audio buffer
    "input_audio_buffer.committed": InputAudioBufferCommittedEvent,
    "input_audio_buffer.cleared": InputAudioBufferClearedEvent,
    "input_audio_buffer.speech_started": InputAudioBufferSpeechStartedEvent,
    "input_audio_buffer.speech_stopped": InputAudioBufferSpeechStoppedEvent,
    # Conversation
    "conversation.item.created": ConversationItemCreatedEvent,
    "conversation.item.retrieved": ConversationItemRetrievedEvent,
    "conversation.item.truncated": ConversationItemTruncatedEvent,
    "conversation.item.deleted": ConversationItemDeletedEvent,
    "conversation.item.input_audio_transcription.completed": (
        ConversationItemTranscriptionCompletedEvent
    ),
    "conversation.item.input_audio_transcription.delta": ConversationItemTranscriptionDeltaEvent,
    "conversation.item.input_audio_transcription.failed": (
        ConversationItemTranscriptionFailedEvent
    ),
    # Response
    "response.created": ResponseCreatedEvent,
    "response.done": ResponseDoneEvent,
    "response.output_item.added": ResponseOutputItemAddedEvent,
    "response.output_item.done": ResponseOutputItemDoneEvent,
    "response.content_part.added": ResponseContentPartAddedEvent,
    "response.content_part.done": ResponseContentPartDoneEvent,
    # Text streaming
    "response.text.delta": ResponseTextDeltaEvent,
    "response.text.done": ResponseTextDoneEvent,
    # Audio streaming
    "response.audio.delta": ResponseAudioDeltaEvent,
    "response.audio.done": ResponseAudioDoneEvent,
    "response.audio_transcript.delta": ResponseAudioTranscriptDeltaEvent,
    "response.audio_transcript.done": ResponseAudioTranscriptDoneEvent,
    # Audio timestamps
    "response.audio_timestamp.delta": ResponseAudioTimestampDeltaEvent,
    "response.audio_timestamp.done": ResponseAudioTimestampDoneEvent,
    # Animation
    "response.animation_blendshapes.delta": ResponseAnimationBlendshapesDeltaEvent,
    "response.animation_blendshapes.done": ResponseAnimationBlendshapesDoneEvent,
    "response.animation_viseme.delta": ResponseAnimationVisemeDeltaEvent,
    "response.animation_viseme.done": ResponseAnimationVisemeDoneEvent,
    # Function / tool calls
    "response.function_call_arguments.delta": ResponseFunctionCallArgumentsDeltaEvent,
    "response.function_call_arguments.done": ResponseFunctionCallArgumentsDoneEvent,
    "response.mcp_call_arguments.delta": ResponseMcpCallArgumentsDeltaEvent,
    "response.mcp_call_arguments.done": ResponseMcpCallArgumentsDoneEvent,
    "response.mcp_call.in_progress": ResponseMcpCallInProgressEvent,
    "response.mcp_call.completed": ResponseMcpCallCompletedEvent,
    "response.mcp_call.failed": ResponseMcpCallFailedEvent,
    # MCP tool listing
    "mcp_list_tools.in_progress": McpListToolsInProgressEvent,
    "mcp_list_tools.completed": McpListToolsCompletedEvent,
    "mcp_list_tools.failed": McpListToolsFailedEvent,
    # System
    "error": ErrorEvent,
    "rate_limits.updated": RateLimitsUpdatedEvent,
}


def parse_server_event(raw: str | bytes) -> ServerEvent:
    """
    Decode a single inbound message.

    Args:
        raw: JSON text (or UTF-8 bytes) of one WebSocket message

    Returns:
        Typed event, or UnknownEvent for unrecognized types

    Raises:
        ServerEventDecodeError: If the message is not a JSON object with a
            string ``type``, or a known type fails validation
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ServerEventDecodeError(f"Invalid JSON: {e}", text) from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ServerEventDecodeError("Message has no event type", text)

    event_type = data["type"]
    event_cls = SERVER_EVENT_TYPES.get(event_type)
    if event_cls is None:
        return UnknownEvent(type=event_type, event_id=data.get("event_id"), payload=data)

    try:
        return event_cls.model_validate(data)
    except ValidationError as e:
        raise ServerEventDecodeError(f"Invalid {event_type} event: {e}", text) from e
