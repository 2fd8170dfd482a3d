"""Non-blocking socket capability used by the bridge elements.

Defines the ``StreamSocket`` and ``DatagramSocket`` protocols the elements
program against, plus ``TcpStream`` and ``UdpSocket`` built on the
standard ``socket`` module. Nothing in here blocks the caller: host names
are resolved on a small thread pool, connects are started with
``connect_ex`` and polled with zero-timeout ``select`` calls.
"""

from __future__ import annotations

import atexit
import errno
import logging
import select
import socket
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "DatagramSocket",
    "StreamSocket",
    "TcpStream",
    "UdpSocket",
    "close_shared_datagram_socket",
    "shared_datagram_socket",
]

logger = logging.getLogger("tickbridge.transport")

type AddrInfo = tuple[socket.AddressFamily, socket.SocketKind, int, str, tuple[Any, ...]]

_CONNECT_IN_PROGRESS = frozenset({
    0,
    errno.EINPROGRESS,
    errno.EWOULDBLOCK,
    errno.EALREADY,
    getattr(errno, "WSAEWOULDBLOCK", errno.EWOULDBLOCK),
})


@runtime_checkable
class StreamSocket(Protocol):
    """Stream connection polled once per tick.

    Implementations never raise from these methods; failures are reported
    through ``connected`` turning (or staying) ``False``.
    """

    def connect(self, host: str, port: int) -> None:
        """Start a non-blocking connection attempt."""
        ...

    @property
    def connected(self) -> bool:
        """Return whether the connection is currently established."""
        ...

    def send(self, data: bytes) -> None:
        """Transmit *data* on an established connection."""
        ...

    def available(self) -> int:
        """Return the number of bytes ready to read without blocking."""
        ...

    def receive(self, size: int) -> bytes:
        """Read up to *size* bytes that ``available`` reported."""
        ...

    def shutdown(self) -> None:
        """Request a graceful disconnect."""
        ...

    def close(self) -> None:
        """Release the underlying handle."""
        ...


@runtime_checkable
class DatagramSocket(Protocol):
    """Fire-and-forget packet sender."""

    def send_to(self, data: bytes, host: str, port: int) -> None:
        """Submit one packet; delivery is best effort."""
        ...


class TcpStream:
    """``StreamSocket`` backed by a non-blocking TCP socket.

    Parameters
    ----------
    receive_buffer_size : int
        Upper bound on the bytes ``available`` reports in a single poll.
    resolver : Executor | None
        Runs host name lookups. Defaults to a shared thread pool.

    Examples
    --------
    >>> stream = TcpStream()
    >>> stream.connect("127.0.0.1", 9000)
    >>> stream.connected  # poll on later ticks
    False
    >>> stream.close()
    """

    def __init__(
        self,
        *,
        receive_buffer_size: int = 65536,
        resolver: Executor | None = None,
    ) -> None:
        self._receive_buffer_size = receive_buffer_size
        self._resolver = resolver
        self._sock: socket.socket | None = None
        self._lookup: Future[list[AddrInfo]] | None = None
        self._candidates: list[AddrInfo] = []
        self._established = False
        self._broken = False

    def connect(self, host: str, port: int) -> None:
        """Start connecting to *host*:*port*.

        IP literals are resolved inline. Host names are looked up on the
        resolver executor and ``connected`` starts the socket connect once
        the lookup has finished. Every resolved address is tried in turn.
        """
        try:
            infos = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM, flags=socket.AI_NUMERICHOST
            )
        except socket.gaierror:
            resolver = self._resolver or _shared_resolver()
            self._lookup = resolver.submit(
                socket.getaddrinfo, host, port, type=socket.SOCK_STREAM
            )
            logger.debug("Resolving %s:%s", host, port)
            return
        except (OSError, OverflowError, ValueError, TypeError) as exc:
            logger.debug("Cannot start connect to %s:%s (%s)", host, port, exc)
            self._broken = True
            return
        self._candidates = list(infos)
        self._connect_next()

    def _connect_next(self) -> None:
        """Close the current socket and start connecting to the next candidate."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        while self._candidates:
            family, type_, proto, _, address = self._candidates.pop(0)
            try:
                sock = socket.socket(family, type_, proto)
            except OSError as exc:
                logger.debug("Cannot open socket for %s (%s)", address, exc)
                continue
            sock.setblocking(False)
            try:
                result = sock.connect_ex(address)
            except (OSError, OverflowError) as exc:
                result = exc.errno if isinstance(exc, OSError) and exc.errno else -1
            if result in _CONNECT_IN_PROGRESS:
                logger.debug("TCP connect -> %s", address)
                self._sock = sock
                return
            logger.debug("Connect to %s failed: %s", address, errno.errorcode.get(result, result))
            sock.close()
        self._broken = True

    def _finish_lookup(self, lookup: Future[list[AddrInfo]]) -> None:
        self._lookup = None
        try:
            infos = lookup.result()
        except (OSError, OverflowError, ValueError, TypeError) as exc:
            logger.debug("Name resolution failed (%s)", exc)
            self._broken = True
            return
        self._candidates = list(infos)
        self._connect_next()

    @property
    def connected(self) -> bool:
        if self._broken:
            return False
        if self._established:
            return self._sock is not None
        if self._lookup is not None:
            if not self._lookup.done():
                return False
            self._finish_lookup(self._lookup)
        if self._sock is None:
            return False
        try:
            _, writable, failed = select.select([], [self._sock], [self._sock], 0)
        except (OSError, ValueError):
            self._broken = True
            return False
        if not writable and not failed:
            return False
        error = self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if error != 0:
            logger.debug("Connect failed: %s", errno.errorcode.get(error, error))
            # the next candidate is polled on the following tick
            self._connect_next()
            return False
        self._sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._established = True
        return True

    def send(self, data: bytes) -> None:
        if self._sock is None or not self._established:
            return
        try:
            self._sock.sendall(data)
        except OSError as exc:
            logger.debug("Send failed, marking connection broken (%s)", exc)
            self._broken = True

    def available(self) -> int:
        if self._sock is None or not self._established or self._broken:
            return 0
        try:
            readable, _, _ = select.select([self._sock], [], [], 0)
            if not readable:
                return 0
            peeked = self._sock.recv(self._receive_buffer_size, socket.MSG_PEEK)
        except BlockingIOError:
            return 0
        except (OSError, ValueError) as exc:
            logger.debug("Receive poll failed, marking connection broken (%s)", exc)
            self._broken = True
            return 0
        if not peeked:
            logger.debug("Peer closed the connection")
            self._broken = True
        return len(peeked)

    def receive(self, size: int) -> bytes:
        if self._sock is None or size <= 0:
            return b""
        try:
            return self._sock.recv(size)
        except BlockingIOError:
            return b""
        except OSError as exc:
            logger.debug("Receive failed, marking connection broken (%s)", exc)
            self._broken = True
            return b""

    def shutdown(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def close(self) -> None:
        if self._lookup is not None:
            self._lookup.cancel()
            self._lookup = None
        self._candidates = []
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._established = False


class UdpSocket:
    """``DatagramSocket`` with one unbound UDP socket per address family.

    IPv4 and IPv6 literals are sent from a socket of the matching family,
    opened on first use. Host names are handed to the IPv4 socket, which
    resolves them itself. ``send_to`` is serialized by a lock so a single
    instance may be shared across threads. Send faults are logged and
    dropped.
    """

    def __init__(self) -> None:
        self._socks: dict[socket.AddressFamily, socket.socket] = {}
        self._lock = threading.Lock()

    def _socket_for(self, family: socket.AddressFamily) -> socket.socket:
        sock = self._socks.get(family)
        if sock is None:
            sock = socket.socket(family, socket.SOCK_DGRAM)
            sock.setblocking(False)
            if family == socket.AF_INET:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            self._socks[family] = sock
        return sock

    def send_to(self, data: bytes, host: str, port: int) -> None:
        try:
            try:
                infos = socket.getaddrinfo(
                    host, port, type=socket.SOCK_DGRAM, flags=socket.AI_NUMERICHOST
                )
                family, _, _, _, address = infos[0]
            except socket.gaierror:
                family, address = socket.AF_INET, (host, port)
            with self._lock:
                self._socket_for(family).sendto(data, address)
        except (OSError, OverflowError, ValueError, TypeError) as exc:
            logger.debug("Dropping %d-byte packet to %s:%s (%s)", len(data), host, port, exc)

    def close(self) -> None:
        with self._lock:
            for sock in self._socks.values():
                sock.close()
            self._socks.clear()


_shared: UdpSocket | None = None
_shared_lock = threading.Lock()
_resolver: ThreadPoolExecutor | None = None


def _shared_resolver() -> ThreadPoolExecutor:
    global _resolver
    with _shared_lock:
        if _resolver is None:
            _resolver = ThreadPoolExecutor(
                max_workers=4, thread_name_prefix="tickbridge-resolve"
            )
        return _resolver


def shared_datagram_socket() -> UdpSocket:
    """Return the process-wide outbound UDP socket, creating it on first use."""
    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = UdpSocket()
        return _shared


def close_shared_datagram_socket() -> None:
    """Close the shared UDP socket; the next ``shared_datagram_socket`` call reopens it."""
    global _shared
    with _shared_lock:
        if _shared is not None:
            _shared.close()
            _shared = None


atexit.register(close_shared_datagram_socket)
