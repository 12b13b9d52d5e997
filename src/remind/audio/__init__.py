"""Audio capture, playback and buffering."""

from remind.audio.backend import AudioBackend, SoundDeviceBackend
from remind.audio.buffer import AudioBufferManager, BufferQueue, BufferStatistics
from remind.audio.service import (
    AsyncStream,
    AudioErrorKind,
    AudioService,
    AudioServiceError,
    ChunkStream,
)

__all__ = [
    "AsyncStream",
    "AudioBackend",
    "AudioBufferManager",
    "AudioErrorKind",
    "AudioService",
    "AudioServiceError",
    "BufferQueue",
    "BufferStatistics",
    "ChunkStream",
    "SoundDeviceBackend",
]
