"""Shared fakes for tickbridge tests."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

import pytest

from tickbridge import ConnectionDriver, ConnectionInputs


# Fakes


@dataclass
class FakeStream:
    """Scripted ``StreamSocket``.

    ``connect_after`` is the number of ``connected`` polls that report
    ``False`` before the connection is established; ``None`` never connects.
    """

    connect_after: int | None = 0
    target: tuple[str, Any] | None = None
    sent: list[bytes] = field(default_factory=list)
    inbox: deque[bytes] = field(default_factory=deque)
    alive: bool = True
    shutdown_called: bool = False
    closed: bool = False
    polls: int = 0

    def connect(self, host: str, port: int) -> None:
        self.target = (host, port)

    @property
    def connected(self) -> bool:
        if self.closed or not self.alive or self.connect_after is None:
            return False
        if self.polls < self.connect_after:
            self.polls += 1
            return False
        return True

    def send(self, data: bytes) -> None:
        self.sent.append(data)

    def available(self) -> int:
        return len(self.inbox[0]) if self.inbox else 0

    def receive(self, size: int) -> bytes:
        chunk = self.inbox.popleft()
        assert len(chunk) == size
        return chunk

    def shutdown(self) -> None:
        self.shutdown_called = True

    def close(self) -> None:
        self.closed = True


class StreamFactory:
    """Hands out ``FakeStream``s and remembers every one it created."""

    def __init__(self, connect_after: int | None = 0) -> None:
        self.connect_after = connect_after
        self.created: list[FakeStream] = []

    def __call__(self) -> FakeStream:
        stream = FakeStream(connect_after=self.connect_after)
        self.created.append(stream)
        return stream

    @property
    def last(self) -> FakeStream:
        return self.created[-1]


@dataclass
class FakeDatagramSocket:
    """Records packets instead of sending them."""

    packets: list[tuple[bytes, str, int]] = field(default_factory=list)

    def send_to(self, data: bytes, host: str, port: int) -> None:
        self.packets.append((data, host, port))


@dataclass
class RecordingOutput:
    """``Output`` that keeps every written value."""

    values: list[Any] = field(default_factory=list)

    def write(self, value: Any) -> None:
        self.values.append(value)

    @property
    def last(self) -> Any:
        return self.values[-1]


# Fixtures


@pytest.fixture
def streams() -> StreamFactory:
    return StreamFactory()


@pytest.fixture
def response() -> RecordingOutput:
    return RecordingOutput()


@pytest.fixture
def status() -> RecordingOutput:
    return RecordingOutput()


@pytest.fixture
def driver(
    streams: StreamFactory, response: RecordingOutput, status: RecordingOutput
) -> ConnectionDriver:
    return ConnectionDriver(
        ConnectionInputs(host="127.0.0.1", port=9000, send_data="PING"),
        response=response,
        status=status,
        stream_factory=streams,
    )
