"""
Audio hardware backends.

A backend exposes the minimal surface the audio service needs: a
session (device and sample-rate negotiation), a shared engine (one
duplex stream used by both capture and playback), an input tap and a
player that schedules float frames with completion callbacks.

Tap and completion callbacks run on the audio hardware thread.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from remind.audio.format import CHUNK_DURATION_MS, DTYPE, SAMPLE_RATE
from remind.core.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger("audio.backend")

TapCallback = Callable[["NDArray[np.float32]"], None]
CompletionCallback = Callable[[], None]

# Common sample rates to try (in order of preference)
SUPPORTED_SAMPLE_RATES = [24000, 48000, 44100, 96000, 16000]


class AudioBackend(ABC):
    """Hardware abstraction used by AudioService."""

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """Device sample rate (valid after activate_session)."""

    @property
    @abstractmethod
    def is_engine_running(self) -> bool:
        """Whether the shared engine is started."""

    @abstractmethod
    def activate_session(self) -> None:
        """Negotiate devices and sample rate."""

    @abstractmethod
    def deactivate_session(self) -> None:
        """Release the device session."""

    @abstractmethod
    def start_engine(self) -> None:
        """Start the shared engine."""

    @abstractmethod
    def stop_engine(self) -> None:
        """Stop the engine; scheduled frames are dropped without completion."""

    @abstractmethod
    def install_tap(self, callback: TapCallback) -> None:
        """Deliver mono float input frames at the device rate to ``callback``."""

    @abstractmethod
    def remove_tap(self) -> None:
        """Stop delivering input frames."""

    @abstractmethod
    def schedule(self, frames: NDArray[np.float32], on_complete: CompletionCallback) -> None:
        """Queue mono float frames for output; ``on_complete`` fires once played."""

    @abstractmethod
    def stop_player(self) -> None:
        """Drop all scheduled frames immediately without completion."""


@dataclass
class _ScheduledBuffer:
    frames: NDArray[np.float32]
    on_complete: CompletionCallback
    offset: int = 0


class SoundDeviceBackend(AudioBackend):
    """
    Backend built on a single sounddevice duplex stream.

    The stream's callback feeds the input tap and drains the scheduled
    output buffers, emitting silence when nothing is scheduled.
    """

    def __init__(
        self,
        target_sample_rate: int = SAMPLE_RATE,
        block_duration_ms: int = CHUNK_DURATION_MS,
        input_device: str | None = None,
        output_device: str | None = None,
    ) -> None:
        """
        Initialize backend.

        Args:
            target_sample_rate: Preferred device sample rate
            block_duration_ms: Duration of one stream callback block
            input_device: Input device name (None = system default)
            output_device: Output device name (None = system default)
        """
        self._target_sample_rate = target_sample_rate
        self._block_duration_ms = block_duration_ms
        self._input_device = input_device
        self._output_device = output_device

        self._sd: Any = None
        self._stream: Any = None
        self._sample_rate = target_sample_rate
        self._session_active = False

        self._lock = threading.Lock()
        self._tap: TapCallback | None = None
        self._scheduled: deque[_ScheduledBuffer] = deque()

    def _ensure_sounddevice(self) -> Any:
        """Import and return sounddevice module."""
        if self._sd is None:
            try:
                import sounddevice as sd

                self._sd = sd
            except (ImportError, OSError) as e:
                raise ImportError(
                    "sounddevice with a working PortAudio library is required for audio I/O"
                ) from e
        return self._sd

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_engine_running(self) -> bool:
        return self._stream is not None and bool(self._stream.active)

    def _find_supported_sample_rate(self, sd: Any) -> int:
        """Find a sample rate supported by both configured devices."""
        preferred = [self._target_sample_rate] + [
            r for r in SUPPORTED_SAMPLE_RATES if r != self._target_sample_rate
        ]
        for rate in preferred:
            try:
                sd.check_input_settings(device=self._input_device, samplerate=rate, channels=1)
                sd.check_output_settings(device=self._output_device, samplerate=rate, channels=1)
                return rate
            except (sd.PortAudioError, ValueError):
                continue

        device_info = sd.query_devices(self._input_device, kind="input")
        return int(device_info["default_samplerate"])

    def activate_session(self) -> None:
        if self._session_active:
            return
        sd = self._ensure_sounddevice()
        self._sample_rate = self._find_supported_sample_rate(sd)
        self._session_active = True

        if self._sample_rate != self._target_sample_rate:
            logger.info(
                f"Device sample rate {self._sample_rate}Hz, "
                f"will resample to {self._target_sample_rate}Hz"
            )
        logger.debug("Audio session activated")

    def deactivate_session(self) -> None:
        self._session_active = False
        logger.debug("Audio session deactivated")

    def start_engine(self) -> None:
        if self.is_engine_running:
            return
        sd = self._ensure_sounddevice()

        self._stream = sd.Stream(
            samplerate=self._sample_rate,
            channels=1,
            dtype=DTYPE,
            blocksize=int(self._sample_rate * self._block_duration_ms / 1000),
            device=(self._input_device, self._output_device),
            callback=self._callback,
        )
        self._stream.start()
        logger.info(f"Audio engine started at {self._sample_rate}Hz")

    def stop_engine(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
        with self._lock:
            self._scheduled.clear()
        logger.info("Audio engine stopped")

    def install_tap(self, callback: TapCallback) -> None:
        with self._lock:
            self._tap = callback

    def remove_tap(self) -> None:
        with self._lock:
            self._tap = None

    def schedule(self, frames: NDArray[np.float32], on_complete: CompletionCallback) -> None:
        with self._lock:
            self._scheduled.append(_ScheduledBuffer(frames=frames, on_complete=on_complete))

    def stop_player(self) -> None:
        with self._lock:
            self._scheduled.clear()

    def _callback(
        self,
        indata: NDArray[np.float32],
        outdata: NDArray[np.float32],
        frames: int,
        _time_info: object,
        status: object,
    ) -> None:
        if status:
            logger.warning(f"Audio stream status: {status}")

        with self._lock:
            tap = self._tap
        if tap is not None:
            tap(indata[:, 0].copy() if indata.ndim > 1 else indata.copy())

        outdata.fill(0)
        completed: list[CompletionCallback] = []
        filled = 0
        with self._lock:
            while filled < frames and self._scheduled:
                current = self._scheduled[0]
                count = min(frames - filled, len(current.frames) - current.offset)
                outdata[filled : filled + count, 0] = current.frames[
                    current.offset : current.offset + count
                ]
                filled += count
                current.offset += count
                if current.offset >= len(current.frames):
                    self._scheduled.popleft()
                    completed.append(current.on_complete)

        for on_complete in completed:
            on_complete()
