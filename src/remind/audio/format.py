"""
PCM audio format helpers.

The wire format both ways is 16-bit little-endian PCM, mono, 24kHz.
Capture is sliced into 100ms chunks (2400 frames, 4800 bytes); the
hardware side works in float32 frames at whatever rate the device
supports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

SAMPLE_RATE = 24000
CHANNELS = 1
BYTES_PER_SAMPLE = 2
CHUNK_DURATION_MS = 100
CHUNK_FRAMES = SAMPLE_RATE * CHUNK_DURATION_MS // 1000  # 2400
CHUNK_BYTES = CHUNK_FRAMES * BYTES_PER_SAMPLE  # 4800
DTYPE = np.float32

PCM16_DTYPE = np.dtype("<i2")
PCM16_SCALE = 32767.0


def chunk_size_bytes(sample_rate: int = SAMPLE_RATE, duration_ms: int = CHUNK_DURATION_MS) -> int:
    """Size in bytes of one PCM16 mono chunk."""
    return sample_rate * duration_ms // 1000 * BYTES_PER_SAMPLE


def pcm16_duration_ms(byte_count: int, sample_rate: int = SAMPLE_RATE) -> float:
    """Duration of PCM16 mono audio in milliseconds."""
    return byte_count / BYTES_PER_SAMPLE / sample_rate * 1000.0


def resample(audio: NDArray[np.float32], from_rate: int, to_rate: int) -> NDArray[np.float32]:
    """
    Resample audio using linear interpolation.

    Args:
        audio: Input audio samples
        from_rate: Source sample rate
        to_rate: Target sample rate

    Returns:
        Resampled audio
    """
    if from_rate == to_rate or len(audio) == 0:
        return audio.astype(np.float32, copy=False)

    duration = len(audio) / from_rate
    out_len = int(round(duration * to_rate))

    in_time = np.linspace(0, duration, len(audio), endpoint=False)
    out_time = np.linspace(0, duration, out_len, endpoint=False)

    return np.interp(out_time, in_time, audio).astype(np.float32)


def float_to_pcm16(frames: NDArray[np.float32]) -> bytes:
    """Convert float frames in [-1, 1] to PCM16 little-endian bytes."""
    clipped = np.clip(frames, -1.0, 1.0)
    return (clipped * PCM16_SCALE).astype(PCM16_DTYPE).tobytes()


def pcm16_to_float(data: bytes) -> NDArray[np.float32]:
    """
    Convert PCM16 little-endian bytes to float frames.

    Raises:
        ValueError: If the byte count is not a whole number of samples
    """
    if len(data) % BYTES_PER_SAMPLE:
        raise ValueError(f"PCM16 data has odd length ({len(data)} bytes)")
    samples = np.frombuffer(data, dtype=PCM16_DTYPE)
    return (samples.astype(np.float32) / PCM16_SCALE).astype(np.float32)


def split_chunks(data: bytes, chunk_bytes: int = CHUNK_BYTES) -> list[bytes]:
    """Slice audio into chunks of ``chunk_bytes``; the last one may be short."""
    return [data[i : i + chunk_bytes] for i in range(0, len(data), chunk_bytes)]


class PCMChunker:
    """
    Slices a continuous PCM16 stream into fixed-size chunks.

    Bytes that do not fill a whole chunk are carried to the next
    ``feed()``; ``flush()`` returns them as a final short chunk.
    """

    def __init__(self, chunk_bytes: int = CHUNK_BYTES) -> None:
        if chunk_bytes <= 0 or chunk_bytes % BYTES_PER_SAMPLE:
            raise ValueError(f"Invalid chunk size: {chunk_bytes}")
        self.chunk_bytes = chunk_bytes
        self._pending = bytearray()

    @property
    def pending_bytes(self) -> int:
        return len(self._pending)

    def feed(self, data: bytes) -> list[bytes]:
        """Add audio and return every chunk that is now complete."""
        self._pending.extend(data)
        chunks: list[bytes] = []
        while len(self._pending) >= self.chunk_bytes:
            chunks.append(bytes(self._pending[: self.chunk_bytes]))
            del self._pending[: self.chunk_bytes]
        return chunks

    def flush(self) -> bytes | None:
        """Return the carried remainder (None if empty) and reset."""
        if not self._pending:
            return None
        remainder = bytes(self._pending)
        self._pending.clear()
        return remainder
