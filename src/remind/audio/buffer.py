"""
Bounded capture/playback chunk queues.

Both queues are FIFO deques with a maximum length. Appending past the
maximum evicts the oldest chunks; eviction is logged, never raised.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum

from remind.core.logging import get_logger

logger = get_logger("audio.buffer")

DEFAULT_CAPTURE_MAX = 100  # 10s at 100ms per chunk
DEFAULT_PLAYBACK_MAX = 50  # 5s at 100ms per chunk


class BufferQueue(Enum):
    """Queue selector."""

    CAPTURE = "capture"
    PLAYBACK = "playback"


@dataclass(frozen=True)
class BufferStatistics:
    """Point-in-time view of both queues."""

    capture_chunks: int
    playback_chunks: int
    capture_bytes: int
    playback_bytes: int

    @property
    def total_chunks(self) -> int:
        return self.capture_chunks + self.playback_chunks

    @property
    def total_bytes(self) -> int:
        return self.capture_bytes + self.playback_bytes


class AudioBufferManager:
    """Thread-safe bounded queues for captured and to-be-played audio."""

    def __init__(
        self,
        capture_max: int = DEFAULT_CAPTURE_MAX,
        playback_max: int = DEFAULT_PLAYBACK_MAX,
    ) -> None:
        if capture_max < 1 or playback_max < 1:
            raise ValueError("Buffer maximums must be at least 1")

        self._lock = threading.Lock()
        self._queues: dict[BufferQueue, deque[bytes]] = {
            BufferQueue.CAPTURE: deque(),
            BufferQueue.PLAYBACK: deque(),
        }
        self._limits = {
            BufferQueue.CAPTURE: capture_max,
            BufferQueue.PLAYBACK: playback_max,
        }

    def limit(self, queue: BufferQueue) -> int:
        return self._limits[queue]

    def append(self, chunk: bytes, queue: BufferQueue) -> int:
        """
        Append a chunk, evicting the oldest entries past the limit.

        Args:
            chunk: PCM16 audio
            queue: Target queue

        Returns:
            Number of chunks evicted
        """
        with self._lock:
            buffer = self._queues[queue]
            buffer.append(chunk)

            excess = len(buffer) - self._limits[queue]
            for _ in range(max(0, excess)):
                buffer.popleft()

        if excess > 0:
            logger.warning(f"{queue.value.capitalize()} buffer overflow, dropped {excess} chunks")
            return excess
        return 0

    def drain_all(self, queue: BufferQueue = BufferQueue.CAPTURE) -> list[bytes]:
        """Remove and return every chunk in FIFO order."""
        with self._lock:
            buffer = self._queues[queue]
            chunks = list(buffer)
            buffer.clear()
            return chunks

    def take_next(self, queue: BufferQueue = BufferQueue.PLAYBACK) -> bytes | None:
        """Remove and return the oldest chunk, or None if empty."""
        with self._lock:
            buffer = self._queues[queue]
            return buffer.popleft() if buffer else None

    def clear(self, queue: BufferQueue | None = None) -> None:
        """Clear one queue, or both when ``queue`` is None."""
        with self._lock:
            targets = [queue] if queue else list(self._queues)
            for target in targets:
                self._queues[target].clear()
        logger.debug(f"Cleared {'all' if queue is None else queue.value} audio buffers")

    def size(self, queue: BufferQueue) -> int:
        with self._lock:
            return len(self._queues[queue])

    def has_pending(self, queue: BufferQueue = BufferQueue.PLAYBACK) -> bool:
        with self._lock:
            return bool(self._queues[queue])

    def statistics(self) -> BufferStatistics:
        with self._lock:
            capture = self._queues[BufferQueue.CAPTURE]
            playback = self._queues[BufferQueue.PLAYBACK]
            return BufferStatistics(
                capture_chunks=len(capture),
                playback_chunks=len(playback),
                capture_bytes=sum(len(c) for c in capture),
                playback_bytes=sum(len(c) for c in playback),
            )
