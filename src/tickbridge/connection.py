"""TCP element: a tick-driven connection state machine.

``ConnectionDriver`` opens a connection when asked to stay connected or
when the send trigger rises, transmits the encoded payload once per rising
edge, and publishes whatever the peer sends back. It never blocks and
never raises into the host; every failure folds back to ``DISCONNECTED``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Self

from tickbridge.codec import Encoding, decode, encode, resolve_encoding
from tickbridge.transport import StreamSocket, TcpStream

if TYPE_CHECKING:
    from tickbridge.config import BridgeConfig
    from tickbridge.host import Output

__all__ = [
    "ConnectionDriver",
    "ConnectionInputs",
    "ConnectionState",
    "ResponseMode",
    "resolve_response_mode",
]

logger = logging.getLogger("tickbridge.connection")

type StreamFactory = Callable[[], StreamSocket]


class ConnectionState(IntEnum):
    """Connection state, published to the status output as its value."""

    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2


class ResponseMode(IntEnum):
    """How received chunks combine in the response buffer."""

    ALWAYS_OVERWRITE = 0
    ALWAYS_APPEND = 1
    CLEAR_ON_CONNECT = 2


def resolve_response_mode(value: Any) -> ResponseMode:
    """Coerce a host-supplied mode; unknown values append."""
    try:
        return ResponseMode(int(value))
    except (TypeError, ValueError, OverflowError):
        return ResponseMode.ALWAYS_APPEND


@dataclass
class ConnectionInputs:
    """Input properties transferred in by the host before each tick.

    Parameters
    ----------
    host : str
        Name or IP of the remote host.
    port : int
        Remote port.
    connect : bool
        Hold a persistent connection while true.
    send_trigger : bool
        Send ``send_data`` on a false->true edge; also opens a connection
        when ``connect`` is false.
    send_data : str
        Text payload.
    encoding : int
        ``Encoding`` selector used for both directions.
    response_timeout_ms : int
        Minimum time to keep the connection after the last send.
    response_mode : int
        ``ResponseMode`` selector.
    """

    host: str = "127.0.0.1"
    port: int = 80
    connect: bool = False
    send_trigger: bool = False
    send_data: str = ""
    encoding: int = Encoding.UTF8
    response_timeout_ms: int = 100
    response_mode: int = ResponseMode.CLEAR_ON_CONNECT


class ConnectionDriver:
    """Tick-driven TCP client element.

    Parameters
    ----------
    inputs : ConnectionInputs | None
        Initial inputs; the host mutates ``driver.inputs`` between ticks.
    response : Output[str] | None
        Receives the decoded response buffer. ``None`` discards responses.
    status : Output[int] | None
        Receives the ``ConnectionState`` value whenever it changes.
    stream_factory : Callable[[], StreamSocket]
        Creates a fresh stream for every connection attempt.
    tick_rate : float
        Host tick frequency in Hz, used to convert timeouts into ticks.
    connect_timeout : float
        Seconds allowed for a connection attempt.

    Examples
    --------
    >>> driver = ConnectionDriver(ConnectionInputs(host="10.0.0.5", port=502))
    >>> driver.inputs.send_data = "PING"
    >>> driver.inputs.send_trigger = True
    >>> driver.tick()
    >>> driver.state
    <ConnectionState.CONNECTING: 1>
    """

    def __init__(
        self,
        inputs: ConnectionInputs | None = None,
        *,
        response: Output[str] | None = None,
        status: Output[int] | None = None,
        stream_factory: StreamFactory = TcpStream,
        tick_rate: float = 60.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self.inputs = inputs if inputs is not None else ConnectionInputs()
        self.response = response
        self.status = status
        self._stream_factory = stream_factory
        self._tick_rate = tick_rate
        self._connect_ticks = max(1, round(connect_timeout * tick_rate))

        self.state = ConnectionState.DISCONNECTED
        self.published_state: ConnectionState | None = None
        self.send_trigger_latched = False
        self.response_buffer = b""
        self.response_timer = 0
        self.connect_timer = 0
        self.stream: StreamSocket | None = None

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        *,
        response: Output[str] | None = None,
        status: Output[int] | None = None,
        stream_factory: StreamFactory | None = None,
    ) -> ConnectionDriver:
        """Build a driver from the ``[timing]`` and ``[tcp]`` config sections."""
        buffer_size = config.tcp.receive_buffer_size
        return cls(
            config.connection_inputs(),
            response=response,
            status=status,
            stream_factory=stream_factory
            or (lambda: TcpStream(receive_buffer_size=buffer_size)),
            tick_rate=config.timing.tick_rate,
            connect_timeout=config.timing.connect_timeout,
        )

    @property
    def connect_ticks(self) -> int:
        """Tick budget armed into ``connect_timer`` for each attempt."""
        return self._connect_ticks

    def tick(self) -> None:
        """Advance the state machine by one host cycle."""
        previous = self.state
        match self.state:
            case ConnectionState.DISCONNECTED:
                self._tick_disconnected()
            case ConnectionState.CONNECTING:
                self._tick_connecting()
            case ConnectionState.CONNECTED:
                self._tick_connected()

        if self.state is ConnectionState.DISCONNECTED and self.stream is not None:
            self._release_stream()

        if self.state is not previous:
            logger.debug(
                "%s:%s %s -> %s",
                self.inputs.host,
                self.inputs.port,
                previous.name,
                self.state.name,
            )
        self._publish_status()

    def _tick_disconnected(self) -> None:
        inputs = self.inputs
        if inputs.connect or (inputs.send_trigger and not self.send_trigger_latched):
            self._open()
        if not inputs.send_trigger:
            self.send_trigger_latched = False

    def _open(self) -> None:
        stream = self._stream_factory()
        self.stream = stream
        stream.connect(self.inputs.host, self.inputs.port)
        self.state = ConnectionState.CONNECTING
        self.connect_timer = self._connect_ticks
        if (
            resolve_response_mode(self.inputs.response_mode)
            is ResponseMode.CLEAR_ON_CONNECT
            and self.response is not None
        ):
            self.response_buffer = b""
            self.response.write("")

    def _tick_connecting(self) -> None:
        inputs = self.inputs
        if self.stream is not None and self.stream.connected:
            self.state = ConnectionState.CONNECTED
        elif not inputs.connect and not inputs.send_trigger:
            self.state = ConnectionState.DISCONNECTED
        else:
            self.connect_timer -= 1
            if self.connect_timer <= 0:
                logger.debug(
                    "Connect to %s:%s timed out after %d ticks",
                    inputs.host,
                    inputs.port,
                    self._connect_ticks,
                )
                self.state = ConnectionState.DISCONNECTED

    def _tick_connected(self) -> None:
        inputs = self.inputs
        stream = self.stream
        if stream is None:
            self.state = ConnectionState.DISCONNECTED
            return

        if not stream.connected:
            self.state = ConnectionState.DISCONNECTED
        else:
            if inputs.send_trigger and not self.send_trigger_latched:
                stream.send(encode(inputs.send_data, inputs.encoding))
                self.send_trigger_latched = True
                self.response_timer = max(
                    0, int(inputs.response_timeout_ms * self._tick_rate) // 1000
                )
            if self.response_timer > 0:
                self.response_timer -= 1
            if not inputs.send_trigger and not inputs.connect and self.response_timer == 0:
                self.state = ConnectionState.DISCONNECTED
            if not inputs.send_trigger and inputs.connect:
                self.send_trigger_latched = False

        self._receive(stream)

    def _receive(self, stream: StreamSocket) -> None:
        size = stream.available()
        if size <= 0:
            return
        chunk = stream.receive(size)
        if not chunk or self.response is None:
            return
        if resolve_response_mode(self.inputs.response_mode) is ResponseMode.ALWAYS_OVERWRITE:
            self.response_buffer = chunk
        else:
            self.response_buffer += chunk
        self.response.write(decode(self.response_buffer, self.inputs.encoding))

    def _release_stream(self) -> None:
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            if stream.connected:
                stream.shutdown()
        finally:
            stream.close()

    def _publish_status(self) -> None:
        if self.status is not None and self.state is not self.published_state:
            self.status.write(int(self.state))
            self.published_state = self.state

    def close(self) -> None:
        """Release the connection. Safe to call repeatedly."""
        self._release_stream()
        self.state = ConnectionState.DISCONNECTED
        self.response_timer = 0
        self.connect_timer = 0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
