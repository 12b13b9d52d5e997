"""
Audio capture and playback service.

Coordinates the hardware backend, the bounded chunk buffers and the
PCM conversions:

- Capture: input frames are resampled to 24kHz, converted to PCM16 and
  sliced into 100ms chunks pushed on a per-capture ChunkStream.
- Playback: PCM16 chunks are converted to float frames at the device
  rate and scheduled on the player; the playback-state stream publishes
  True when playback begins and False once every scheduled chunk has
  completed (or playback is stopped).

The backend engine and session are shared by both directions: they are
brought up when either becomes active and released only when neither is.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

import numpy as np

from remind.audio.buffer import AudioBufferManager, BufferQueue
from remind.audio.format import (
    CHUNK_DURATION_MS,
    SAMPLE_RATE,
    PCMChunker,
    chunk_size_bytes,
    float_to_pcm16,
    pcm16_to_float,
    resample,
)
from remind.core.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from remind.audio.backend import AudioBackend
    from remind.config.schema import AudioConfig

logger = get_logger("audio.service")

T = TypeVar("T")


class AudioErrorKind(Enum):
    INVALID_FORMAT = "invalid_format"
    CONVERSION_FAILED = "conversion_failed"
    CAPTURE_NOT_STARTED = "capture_not_started"
    ENGINE_START_FAILED = "engine_start_failed"


_ERROR_MESSAGES = {
    AudioErrorKind.INVALID_FORMAT: "Invalid audio format",
    AudioErrorKind.CONVERSION_FAILED: "Audio conversion failed",
    AudioErrorKind.CAPTURE_NOT_STARTED: "Audio capture not started",
    AudioErrorKind.ENGINE_START_FAILED: "Failed to start audio engine",
}


class AudioServiceError(Exception):
    """Audio capture/playback failure."""

    def __init__(self, kind: AudioErrorKind, detail: str | None = None) -> None:
        message = _ERROR_MESSAGES[kind]
        super().__init__(f"{message}: {detail}" if detail else message)
        self.kind = kind
        self.detail = detail


class AsyncStream(Generic[T]):
    """Push-only async stream with an explicit end."""

    _END = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def push(self, item: T) -> None:
        if self._finished:
            return
        self._queue.put_nowait(item)

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(self._END)

    def __aiter__(self) -> AsyncStream[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is self._END:
            # Keep the end marker for any later reader
            self._queue.put_nowait(self._END)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class ChunkStream(AsyncStream[bytes]):
    """PCM16 chunks from one capture session, in capture order."""


class AudioService:
    """
    Microphone capture and speaker playback over an AudioBackend.

    All methods must be called from the event loop; hardware callbacks
    are handed over with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        backend: AudioBackend | None = None,
        buffers: AudioBufferManager | None = None,
        config: AudioConfig | None = None,
    ) -> None:
        """
        Initialize audio service.

        Args:
            backend: Hardware backend (default: SoundDeviceBackend)
            buffers: Chunk buffers (default: sized from config)
            config: Audio configuration
        """
        self._sample_rate = config.sample_rate if config else SAMPLE_RATE
        self._chunk_duration_ms = config.chunk_duration_ms if config else CHUNK_DURATION_MS

        if backend is None:
            from remind.audio.backend import SoundDeviceBackend

            backend = SoundDeviceBackend(
                target_sample_rate=self._sample_rate,
                block_duration_ms=self._chunk_duration_ms,
                input_device=config.input_device if config else None,
                output_device=config.output_device if config else None,
            )
        self._backend = backend

        if buffers is None:
            buffers = (
                AudioBufferManager(config.capture_buffer_max, config.playback_buffer_max)
                if config
                else AudioBufferManager()
            )
        self._buffers = buffers

        self._loop: asyncio.AbstractEventLoop | None = None
        self._session_active = False

        # Capture
        self._capturing = False
        self._capture_epoch = 0
        self._chunker: PCMChunker | None = None
        self._chunk_stream: ChunkStream | None = None

        # Playback
        self._playing = False
        self._playback_epoch = 0
        self._active_buffers = 0
        self._scheduled_count = 0
        self._completed_count = 0
        self._playback_states: AsyncStream[bool] = AsyncStream()

    @property
    def buffers(self) -> AudioBufferManager:
        return self._buffers

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_engine_running(self) -> bool:
        return self._backend.is_engine_running

    @property
    def active_buffer_count(self) -> int:
        """Scheduled playback chunks that have not completed yet."""
        return self._active_buffers

    @property
    def scheduled_buffer_count(self) -> int:
        return self._scheduled_count

    @property
    def completed_buffer_count(self) -> int:
        return self._completed_count

    @property
    def audio_chunks(self) -> ChunkStream | None:
        """Chunk stream of the current (or last) capture."""
        return self._chunk_stream

    def playback_states(self) -> AsyncStream[bool]:
        """Stream of playback activity changes."""
        return self._playback_states

    # === Capture ===

    async def start_capture(self) -> ChunkStream:
        """
        Start capturing microphone audio.

        Returns:
            A fresh stream of 100ms PCM16 chunks

        Raises:
            AudioServiceError: If the format is invalid or the engine fails
        """
        if self._capturing and self._chunk_stream is not None:
            logger.warning("Capture already in progress")
            return self._chunk_stream

        self._loop = asyncio.get_running_loop()

        try:
            chunker = PCMChunker(chunk_size_bytes(self._sample_rate, self._chunk_duration_ms))
        except ValueError as e:
            raise AudioServiceError(AudioErrorKind.INVALID_FORMAT, str(e)) from e

        self._ensure_running()
        if self._backend.sample_rate <= 0:
            self._release_if_idle()
            raise AudioServiceError(
                AudioErrorKind.INVALID_FORMAT, f"device sample rate {self._backend.sample_rate}"
            )

        self._capture_epoch += 1
        self._chunker = chunker
        self._chunk_stream = ChunkStream()
        self._buffers.clear(BufferQueue.CAPTURE)
        self._capturing = True

        epoch = self._capture_epoch
        loop = self._loop

        def on_input(frames: NDArray[np.float32]) -> None:
            # Runs on the audio hardware thread
            self._call_threadsafe(loop, self._handle_input, frames, epoch)

        try:
            self._backend.install_tap(on_input)
        except Exception as e:
            self._capturing = False
            self._chunk_stream.finish()
            self._release_if_idle()
            raise AudioServiceError(AudioErrorKind.CAPTURE_NOT_STARTED, str(e)) from e

        logger.info(
            f"Audio capture started: device={self._backend.sample_rate}Hz, "
            f"target={self._sample_rate}Hz"
        )
        return self._chunk_stream

    async def stop_capture(self) -> None:
        """Stop capture, flush the final partial chunk and end the chunk stream."""
        if not self._capturing:
            logger.debug("Capture not active")
            return

        self._capturing = False
        self._capture_epoch += 1
        self._backend.remove_tap()

        if self._chunker is not None:
            remainder = self._chunker.flush()
            if remainder:
                self._emit_chunk(remainder)
        self._chunker = None

        if self._chunk_stream is not None:
            self._chunk_stream.finish()

        self._buffers.clear(BufferQueue.CAPTURE)
        self._release_if_idle()
        logger.info("Audio capture stopped")

    def _handle_input(self, frames: NDArray[np.float32], epoch: int) -> None:
        if epoch != self._capture_epoch or not self._capturing or self._chunker is None:
            return

        resampled = resample(frames, self._backend.sample_rate, self._sample_rate)
        for chunk in self._chunker.feed(float_to_pcm16(resampled)):
            self._emit_chunk(chunk)

    def _emit_chunk(self, chunk: bytes) -> None:
        self._buffers.append(chunk, BufferQueue.CAPTURE)
        if self._chunk_stream is not None:
            self._chunk_stream.push(chunk)

    # === Playback ===

    async def play_audio(self, chunk: bytes) -> None:
        """
        Schedule a PCM16 chunk for playback.

        Raises:
            AudioServiceError: If the data cannot be converted or the engine fails
        """
        if not chunk:
            return

        try:
            frames = pcm16_to_float(chunk)
        except ValueError as e:
            raise AudioServiceError(AudioErrorKind.CONVERSION_FAILED, str(e)) from e

        self._loop = asyncio.get_running_loop()
        self._ensure_running()
        frames = resample(frames, self._sample_rate, self._backend.sample_rate)

        if not self._playing:
            self._playing = True
            self._playback_states.push(True)
            logger.debug("Playback started")

        epoch = self._playback_epoch
        loop = self._loop
        self._scheduled_count += 1
        self._active_buffers += 1
        self._buffers.append(chunk, BufferQueue.PLAYBACK)

        def on_complete() -> None:
            # Runs on the audio hardware thread
            self._call_threadsafe(loop, self._handle_completion, epoch)

        self._backend.schedule(frames, on_complete)

    async def stop_playback(self) -> None:
        """Stop playback immediately and drop everything scheduled."""
        self._playback_epoch += 1
        self._backend.stop_player()
        self._active_buffers = 0
        self._buffers.clear(BufferQueue.PLAYBACK)

        if self._playing:
            self._playing = False
            self._playback_states.push(False)
            logger.info("Playback stopped")

        self._release_if_idle()

    def _handle_completion(self, epoch: int) -> None:
        if epoch != self._playback_epoch:
            logger.debug("Ignoring completion from stopped playback")
            return

        self._completed_count += 1
        self._active_buffers = max(0, self._active_buffers - 1)
        self._buffers.take_next(BufferQueue.PLAYBACK)

        if self._active_buffers == 0 and self._playing:
            self._playing = False
            self._playback_states.push(False)
            logger.debug(
                f"Playback finished ({self._completed_count}/{self._scheduled_count} buffers)"
            )
            self._release_if_idle()

    # === Lifecycle ===

    async def close(self) -> None:
        """Stop everything and end the streams."""
        await self.stop_capture()
        await self.stop_playback()
        self._playback_states.finish()

    def _ensure_running(self) -> None:
        try:
            if not self._session_active:
                self._backend.activate_session()
                self._session_active = True
            if not self._backend.is_engine_running:
                self._backend.start_engine()
        except Exception as e:
            logger.error(f"Failed to start audio engine: {e}")
            self._release_if_idle()
            raise AudioServiceError(AudioErrorKind.ENGINE_START_FAILED, str(e)) from e

    def _release_if_idle(self) -> None:
        if self._capturing or self._playing:
            return
        if self._backend.is_engine_running:
            self._backend.stop_engine()
        if self._session_active:
            self._backend.deactivate_session()
            self._session_active = False

    @staticmethod
    def _call_threadsafe(
        loop: asyncio.AbstractEventLoop,
        callback: Callable[..., None],
        *args: object,
    ) -> None:
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug("Dropped audio callback after event loop shutdown")
