"""UDP element: fire-and-forget send on a rising trigger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from tickbridge.codec import Encoding, encode
from tickbridge.transport import DatagramSocket, shared_datagram_socket

if TYPE_CHECKING:
    from tickbridge.config import BridgeConfig

__all__ = ["DatagramInputs", "DatagramSender"]

logger = logging.getLogger("tickbridge.datagram")


@dataclass
class DatagramInputs:
    """Input properties of a ``DatagramSender``.

    ``host`` may also be a broadcast address.
    """

    host: str = "127.0.0.1"
    port: int = 8008
    send_trigger: bool = False
    send_data: str = ""
    encoding: int = Encoding.UTF8


class DatagramSender:
    """Sends one packet per false->true edge of ``send_trigger``.

    There is no connection state and no response path. Unless a socket is
    injected, all senders in the process share one outbound UDP socket.

    Examples
    --------
    >>> sender = DatagramSender(DatagramInputs(host="255.255.255.255", port=9999))
    >>> sender.inputs.send_data = "hello"
    >>> sender.inputs.send_trigger = True
    >>> sender.tick()  # one packet submitted
    >>> sender.tick()  # trigger still high, nothing sent
    """

    def __init__(
        self,
        inputs: DatagramInputs | None = None,
        *,
        socket: DatagramSocket | None = None,
    ) -> None:
        self.inputs = inputs if inputs is not None else DatagramInputs()
        self._socket = socket
        self.send_trigger_latched = False

    @classmethod
    def from_config(
        cls, config: BridgeConfig, *, socket: DatagramSocket | None = None
    ) -> DatagramSender:
        """Build a sender from the ``[udp]`` config section."""
        return cls(config.datagram_inputs(), socket=socket)

    @property
    def socket(self) -> DatagramSocket:
        if self._socket is None:
            return shared_datagram_socket()
        return self._socket

    def tick(self) -> None:
        inputs = self.inputs
        if inputs.send_trigger and not self.send_trigger_latched:
            payload = encode(inputs.send_data, inputs.encoding)
            logger.debug("UDP %d bytes -> %s:%s", len(payload), inputs.host, inputs.port)
            self.socket.send_to(payload, inputs.host, inputs.port)
        self.send_trigger_latched = bool(inputs.send_trigger)

    def close(self) -> None:
        """Nothing to release; the shared socket outlives individual senders."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
