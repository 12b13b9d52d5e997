"""Tests for Voice Live wire events."""

import json

import pytest
from remind.voicelive.client_events import (
    ConversationItemCreateEvent,
    InputAudioBufferAppendEvent,
    InputAudioBufferCommitEvent,
    McpApprovalResponseEvent,
    SessionUpdateEvent,
)
from remind.voicelive.models import (
    AzureStandardVoice,
    MessageRequestItem,
    RequestSession,
    ResponseStatus,
    ServerVAD,
)
from remind.voicelive.server_events import (
    SERVER_EVENT_TYPES,
    ErrorEvent,
    InputAudioBufferCommittedEvent,
    ResponseAudioDeltaEvent,
    ResponseDoneEvent,
    ServerEventDecodeError,
    SessionCreatedEvent,
    UnknownEvent,
    parse_server_event,
)


class TestParseServerEvent:
    """Tests for inbound event decoding."""

    def test_session_created(self) -> None:
        """session.created decodes with the session id."""
        event = parse_server_event(
            json.dumps(
                {
                    "type": "session.created",
                    "event_id": "evt_1",
                    "session": {"id": "sess_1", "model": "gpt-4o", "voice": {"name": "x"}},
                }
            )
        )
        assert isinstance(event, SessionCreatedEvent)
        assert event.session.id == "sess_1"
        assert event.event_id == "evt_1"

    def test_bytes_input(self) -> None:
        """UTF-8 bytes decode like text."""
        event = parse_server_event(
            b'{"type": "input_audio_buffer.committed", "item_id": "item_1"}'
        )
        assert isinstance(event, InputAudioBufferCommittedEvent)
        assert event.item_id == "item_1"
        assert event.previous_item_id is None

    def test_audio_delta(self) -> None:
        """Audio deltas keep their base64 payload."""
        event = parse_server_event(
            json.dumps(
                {
                    "type": "response.audio.delta",
                    "response_id": "resp_1",
                    "item_id": "item_1",
                    "output_index": 0,
                    "content_index": 0,
                    "delta": "AAAA",
                }
            )
        )
        assert isinstance(event, ResponseAudioDeltaEvent)
        assert event.delta == "AAAA"
        assert event.response_id == "resp_1"

    def test_response_done_status(self) -> None:
        """Response status decodes to the enum."""
        event = parse_server_event(
            json.dumps(
                {"type": "response.done", "response": {"id": "resp_1", "status": "cancelled"}}
            )
        )
        assert isinstance(event, ResponseDoneEvent)
        assert event.response.status == ResponseStatus.CANCELLED

    def test_error_event(self) -> None:
        """Error events carry the error details."""
        event = parse_server_event(
            json.dumps(
                {
                    "type": "error",
                    "error": {
                        "type": "invalid_request_error",
                        "code": "input_audio_buffer_commit_empty",
                        "message": "buffer too small",
                    },
                }
            )
        )
        assert isinstance(event, ErrorEvent)
        assert event.error.code == "input_audio_buffer_commit_empty"
        assert event.error.message == "buffer too small"

    def test_extra_fields_tolerated(self) -> None:
        """Unknown fields on known events are kept, not rejected."""
        event = parse_server_event(
            json.dumps({"type": "input_audio_buffer.committed", "item_id": "i", "new_field": 1})
        )
        assert isinstance(event, InputAudioBufferCommittedEvent)

    def test_unknown_type(self) -> None:
        """Unrecognized types decode to UnknownEvent with the raw payload."""
        event = parse_server_event(
            json.dumps({"type": "response.future_thing", "event_id": "e9", "x": 1})
        )
        assert isinstance(event, UnknownEvent)
        assert event.type == "response.future_thing"
        assert event.event_id == "e9"
        assert event.payload["x"] == 1

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"event_id": "e1"}',
            '{"type": 5}',
        ],
    )
    def test_undecodable(self, raw: str) -> None:
        """Non-objects and messages without a type fail to decode."""
        with pytest.raises(ServerEventDecodeError) as exc_info:
            parse_server_event(raw)
        assert exc_info.value.raw == raw

    def test_known_type_with_bad_payload(self) -> None:
        """A known type missing required fields fails to decode."""
        with pytest.raises(ServerEventDecodeError, match="response.created"):
            parse_server_event('{"type": "response.created", "response": {}}')

    def test_registry_covers_core_events(self) -> None:
        """The decoding table includes the events the controller relies on."""
        for event_type in (
            "session.created",
            "session.updated",
            "input_audio_buffer.committed",
            "response.created",
            "response.audio.delta",
            "response.audio.done",
            "response.done",
            "error",
        ):
            assert event_type in SERVER_EVENT_TYPES


class TestClientEvents:
    """Tests for outbound event serialization."""

    def test_omits_unset_fields(self) -> None:
        """Unset options never reach the wire."""
        data = json.loads(InputAudioBufferCommitEvent().to_json())
        assert data == {"type": "input_audio_buffer.commit"}

    def test_append(self) -> None:
        """Append carries base64 audio."""
        data = json.loads(InputAudioBufferAppendEvent(audio="AAAA").to_json())
        assert data == {"type": "input_audio_buffer.append", "audio": "AAAA"}

    def test_session_update(self) -> None:
        """Session update serializes nested voice and turn detection."""
        event = SessionUpdateEvent(
            session=RequestSession(
                voice=AzureStandardVoice(name="en-US-AvaNeural", rate="1.2"),
                turn_detection=ServerVAD(threshold=0.5),
            )
        )
        data = json.loads(event.to_json())
        assert data["session"]["voice"] == {
            "type": "azure-standard",
            "name": "en-US-AvaNeural",
            "rate": "1.2",
        }
        assert data["session"]["turn_detection"] == {"type": "server_vad", "threshold": 0.5}

    def test_conversation_item(self) -> None:
        """Text items serialize as input_text content."""
        event = ConversationItemCreateEvent(item=MessageRequestItem.user_text("hello"))
        data = json.loads(event.to_json())
        assert data["item"] == {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": "hello"}],
        }

    def test_tool_approval(self) -> None:
        """Tool approvals carry the request id."""
        data = json.loads(
            McpApprovalResponseEvent(approve=True, approval_request_id="req_1").to_json()
        )
        assert data == {
            "type": "mcp_approval_response",
            "approve": True,
            "approval_request_id": "req_1",
        }
