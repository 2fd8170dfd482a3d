"""TOML-based configuration for tickbridge elements.

Provides ``load_config`` / ``discover_config`` for loading
``tickbridge.toml`` and frozen dataclasses for tick timing and the default
TCP and UDP element inputs.

Example file::

    [timing]
    tick_rate = 60
    connect_timeout = 10.0

    [tcp]
    host = "192.168.1.20"
    port = 502
    encoding = "ascii"
    response_mode = "always_append"

    [udp]
    host = "255.255.255.255"
    port = 8008
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from tickbridge.codec import Encoding
from tickbridge.connection import ConnectionInputs, ResponseMode
from tickbridge.datagram import DatagramInputs

__all__ = [
    "BridgeConfig",
    "EncodingName",
    "ResponseModeName",
    "TcpConfig",
    "TimingConfig",
    "UdpConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILENAME = "tickbridge.toml"

type EncodingName = Literal[
    "binary", "ascii", "utf8", "utf16le", "utf16be", "utf32", "system_default"
]
type ResponseModeName = Literal["always_overwrite", "always_append", "clear_on_connect"]


def _member[E: (Encoding, ResponseMode)](enum_type: type[E], name: str) -> E:
    try:
        return enum_type[name.upper()]
    except KeyError:
        choices = ", ".join(m.name.lower() for m in enum_type)
        msg = f"Unknown {enum_type.__name__} {name!r} (expected one of: {choices})"
        raise ValueError(msg) from None


@dataclass(frozen=True)
class TimingConfig:
    """Host cadence and connect budget.

    Parameters
    ----------
    tick_rate : float
        Host tick frequency in Hz.
    connect_timeout : float
        Seconds a TCP connection attempt may take.

    Examples
    --------
    >>> TimingConfig(tick_rate=50)
    TimingConfig(tick_rate=50, connect_timeout=10.0)
    """

    tick_rate: float = 60.0
    connect_timeout: float = 10.0


@dataclass(frozen=True)
class TcpConfig:
    """Default inputs for TCP elements.

    Parameters
    ----------
    host : str
        Remote host name or IP.
    port : int
        Remote port.
    encoding : EncodingName
        Text encoding for both directions.
    response_timeout_ms : int
        Minimum hold time after the last send.
    response_mode : ResponseModeName
        Response buffer policy.
    receive_buffer_size : int
        Maximum bytes read per tick.
    """

    host: str = "127.0.0.1"
    port: int = 80
    encoding: EncodingName = "utf8"
    response_timeout_ms: int = 100
    response_mode: ResponseModeName = "clear_on_connect"
    receive_buffer_size: int = 65536


@dataclass(frozen=True)
class UdpConfig:
    """Default inputs for UDP elements."""

    host: str = "127.0.0.1"
    port: int = 8008
    encoding: EncodingName = "utf8"


@dataclass(frozen=True)
class BridgeConfig:
    """Top-level configuration container.

    Examples
    --------
    >>> config = BridgeConfig()
    >>> config.connection_inputs().port
    80
    """

    timing: TimingConfig = field(default_factory=TimingConfig)
    tcp: TcpConfig = field(default_factory=TcpConfig)
    udp: UdpConfig = field(default_factory=UdpConfig)

    def connection_inputs(self) -> ConnectionInputs:
        """Fresh ``ConnectionInputs`` seeded from the ``[tcp]`` section."""
        return ConnectionInputs(
            host=self.tcp.host,
            port=self.tcp.port,
            encoding=_member(Encoding, self.tcp.encoding),
            response_timeout_ms=self.tcp.response_timeout_ms,
            response_mode=_member(ResponseMode, self.tcp.response_mode),
        )

    def datagram_inputs(self) -> DatagramInputs:
        """Fresh ``DatagramInputs`` seeded from the ``[udp]`` section."""
        return DatagramInputs(
            host=self.udp.host,
            port=self.udp.port,
            encoding=_member(Encoding, self.udp.encoding),
        )


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``tickbridge.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> BridgeConfig:
    """Load a ``BridgeConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``tickbridge.toml`` by walking up
    from the current working directory and returns defaults when nothing
    is found.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If an encoding or response mode name is not recognised.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return BridgeConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    timing = TimingConfig(**raw.get("timing", {}))
    tcp_raw: dict[str, Any] = raw.get("tcp", {})
    udp_raw: dict[str, Any] = raw.get("udp", {})
    tcp = TcpConfig(**tcp_raw)
    udp = UdpConfig(**udp_raw)

    # fail at load time rather than on the first tick
    _member(Encoding, tcp.encoding)
    _member(ResponseMode, tcp.response_mode)
    _member(Encoding, udp.encoding)

    return BridgeConfig(timing=timing, tcp=tcp, udp=udp)
