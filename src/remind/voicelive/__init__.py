"""Azure Voice Live realtime protocol client."""

from remind.voicelive.client import (
    AudioBufferStatistics,
    BufferTooSmallError,
    ConnectionState,
    VoiceLiveClient,
    VoiceLiveConnectionError,
    VoiceLiveEncodingError,
    VoiceLiveError,
    VoiceLiveStateError,
    VoiceLiveTimeoutError,
)
from remind.voicelive.server_events import ServerEvent, ServerEventDecodeError, parse_server_event

__all__ = [
    "AudioBufferStatistics",
    "BufferTooSmallError",
    "ConnectionState",
    "ServerEvent",
    "ServerEventDecodeError",
    "VoiceLiveClient",
    "VoiceLiveConnectionError",
    "VoiceLiveEncodingError",
    "VoiceLiveError",
    "VoiceLiveStateError",
    "VoiceLiveTimeoutError",
    "parse_server_event",
]
