from tickbridge.codec import Encoding, decode, encode, resolve_encoding
from tickbridge.config import (
    BridgeConfig,
    TcpConfig,
    TimingConfig,
    UdpConfig,
    discover_config,
    load_config,
)
from tickbridge.connection import (
    ConnectionDriver,
    ConnectionInputs,
    ConnectionState,
    ResponseMode,
    resolve_response_mode,
)
from tickbridge.datagram import DatagramInputs, DatagramSender
from tickbridge.host import Element, ElementHost, Output, PropertyOutput, PropertyStore
from tickbridge.scheduler import run_ticks
from tickbridge.transport import (
    DatagramSocket,
    StreamSocket,
    TcpStream,
    UdpSocket,
    close_shared_datagram_socket,
    shared_datagram_socket,
)

__all__ = [
    "BridgeConfig",
    "ConnectionDriver",
    "ConnectionInputs",
    "ConnectionState",
    "DatagramInputs",
    "DatagramSender",
    "DatagramSocket",
    "Element",
    "ElementHost",
    "Encoding",
    "Output",
    "PropertyOutput",
    "PropertyStore",
    "ResponseMode",
    "StreamSocket",
    "TcpConfig",
    "TcpStream",
    "TimingConfig",
    "UdpConfig",
    "UdpSocket",
    "close_shared_datagram_socket",
    "decode",
    "discover_config",
    "encode",
    "load_config",
    "resolve_encoding",
    "resolve_response_mode",
    "run_ticks",
    "shared_datagram_socket",
]
