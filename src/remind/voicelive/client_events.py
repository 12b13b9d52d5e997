"""
Client events sent to the Voice Live service.

Each request maps 1:1 to a wire message type. Events are serialized
as JSON text frames (the service rejects binary frames).
"""

from __future__ import annotations

from typing import Literal

from remind.voicelive.models import (
    ConversationRequestItem,
    RequestSession,
    ResponseOptions,
    WireModel,
)


class ClientEvent(WireModel):
    """Base class for outbound events."""

    type: str
    event_id: str | None = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class SessionUpdateEvent(ClientEvent):
    type: Literal["session.update"] = "session.update"
    session: RequestSession


class InputAudioBufferAppendEvent(ClientEvent):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str  # base64 PCM16


class InputAudioBufferCommitEvent(ClientEvent):
    type: Literal["input_audio_buffer.commit"] = "input_audio_buffer.commit"


class InputAudioBufferClearEvent(ClientEvent):
    type: Literal["input_audio_buffer.clear"] = "input_audio_buffer.clear"


class ConversationItemCreateEvent(ClientEvent):
    type: Literal["conversation.item.create"] = "conversation.item.create"
    previous_item_id: str | None = None
    item: ConversationRequestItem


class ConversationItemRetrieveEvent(ClientEvent):
    type: Literal["conversation.item.retrieve"] = "conversation.item.retrieve"
    item_id: str


class ConversationItemTruncateEvent(ClientEvent):
    type: Literal["conversation.item.truncate"] = "conversation.item.truncate"
    item_id: str
    content_index: int
    audio_end_ms: int


class ConversationItemDeleteEvent(ClientEvent):
    type: Literal["conversation.item.delete"] = "conversation.item.delete"
    item_id: str


class ResponseCreateEvent(ClientEvent):
    type: Literal["response.create"] = "response.create"
    response: ResponseOptions | None = None


class ResponseCancelEvent(ClientEvent):
    type: Literal["response.cancel"] = "response.cancel"


class McpApprovalResponseEvent(ClientEvent):
    """Approve or reject a tool call awaiting confirmation."""

    type: Literal["mcp_approval_response"] = "mcp_approval_response"
    approve: bool
    approval_request_id: str
