"""Pytest configuration and fixtures."""

import asyncio
import json
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from remind.audio.backend import AudioBackend
from remind.config.schema import RemindConfig, VoiceLiveConfig
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

SESSION_ID = "sess_0123456789abcdef"


class FakeBackend(AudioBackend):
    """In-memory audio backend recording every hardware call."""

    def __init__(self, sample_rate: int = 24000, fail_engine: bool = False) -> None:
        self._sample_rate = sample_rate
        self.fail_engine = fail_engine

        self.engine_running = False
        self.session_active = False
        self.engine_starts = 0
        self.engine_stops = 0
        self.session_activations = 0
        self.session_deactivations = 0

        self.tap: Callable[[Any], None] | None = None
        self.scheduled: list[tuple[Any, Callable[[], None]]] = []

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_engine_running(self) -> bool:
        return self.engine_running

    def activate_session(self) -> None:
        self.session_active = True
        self.session_activations += 1

    def deactivate_session(self) -> None:
        self.session_active = False
        self.session_deactivations += 1

    def start_engine(self) -> None:
        if self.fail_engine:
            raise RuntimeError("device busy")
        self.engine_running = True
        self.engine_starts += 1

    def stop_engine(self) -> None:
        self.engine_running = False
        self.engine_stops += 1
        self.scheduled.clear()

    def install_tap(self, callback: Callable[[Any], None]) -> None:
        self.tap = callback

    def remove_tap(self) -> None:
        self.tap = None

    def schedule(self, frames: Any, on_complete: Callable[[], None]) -> None:
        self.scheduled.append((frames, on_complete))

    def stop_player(self) -> None:
        self.scheduled.clear()

    # Test helpers

    def feed_silence(self, frames: int) -> None:
        """Deliver ``frames`` input samples through the tap."""
        assert self.tap is not None, "no tap installed"
        self.tap(np.zeros(frames, dtype=np.float32))

    def complete_next(self) -> None:
        _, on_complete = self.scheduled.pop(0)
        on_complete()

    def complete_all(self) -> None:
        while self.scheduled:
            self.complete_next()


_CLOSE = object()


class FakeWebSocket:
    """Scripted WebSocket connection."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.url: str | None = None
        self.connect_kwargs: dict[str, Any] = {}
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_events(self) -> list[dict[str, Any]]:
        return [json.loads(message) for message in self.sent]

    @property
    def sent_types(self) -> list[str]:
        return [event["type"] for event in self.sent_events]

    def push(self, event: dict[str, Any] | str) -> None:
        """Queue an inbound message."""
        self._incoming.put_nowait(event if isinstance(event, str) else json.dumps(event))

    def push_session_created(self, session_id: str = SESSION_ID) -> None:
        self.push({"type": "session.created", "event_id": "evt_1", "session": {"id": session_id}})

    def close_remote(self) -> None:
        """Remote end closes cleanly."""
        self._incoming.put_nowait(_CLOSE)

    def fail(self) -> None:
        """Remote end drops the connection."""
        self._incoming.put_nowait(ConnectionClosedError(None, None))

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(_CLOSE)

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def tmp_config_dir() -> Path:
    """Create a temporary config directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def connector(fake_ws: FakeWebSocket) -> Callable[..., Awaitable[FakeWebSocket]]:
    """Connector returning the fake WebSocket."""

    async def connect(url: str, **kwargs: Any) -> FakeWebSocket:
        fake_ws.url = url
        fake_ws.connect_kwargs = kwargs
        return fake_ws

    return connect


@pytest.fixture
def voicelive_config() -> VoiceLiveConfig:
    return VoiceLiveConfig(
        api_key="test-key",
        resource_name="test-resource",
        session_timeout_seconds=1.0,
        connect_timeout_seconds=1.0,
    )


@pytest.fixture
def remind_config(voicelive_config: VoiceLiveConfig, tmp_config_dir: Path) -> RemindConfig:
    return RemindConfig(voicelive=voicelive_config, config_dir=tmp_config_dir)


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a predicate on the event loop until it holds."""

    async def wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = asyncio.get_running_loop().time() + timeout
        while not predicate():
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(0.005)

    return wait
