"""Text encoding table shared by the TCP and UDP elements.

Maps the ``Encoding`` selector exposed to the host onto Python codecs and
implements the truncating ``BINARY`` mode, which carries one raw byte per
character.
"""

from __future__ import annotations

import codecs
import locale
import logging
from enum import IntEnum
from types import MappingProxyType
from typing import Any

__all__ = ["Encoding", "decode", "encode", "resolve_encoding"]

logger = logging.getLogger("tickbridge.codec")


class Encoding(IntEnum):
    """Encoding selector, numbered as the host presents it."""

    BINARY = 0
    ASCII = 1
    UTF8 = 2
    UTF16LE = 3
    UTF16BE = 4
    UTF32 = 5
    SYSTEM_DEFAULT = 6


_CODECS: MappingProxyType[Encoding, str] = MappingProxyType({
    Encoding.BINARY: "utf-16-le",
    Encoding.ASCII: "ascii",
    Encoding.UTF8: "utf-8",
    Encoding.UTF16LE: "utf-16-le",
    Encoding.UTF16BE: "utf-16-be",
    Encoding.UTF32: "utf-32-le",
    Encoding.SYSTEM_DEFAULT: locale.getpreferredencoding(False),
})


def _question_mark(exc: UnicodeError) -> tuple[str, int]:
    # one "?" per undecodable byte
    if not isinstance(exc, UnicodeDecodeError):
        raise exc
    return "?" * (exc.end - exc.start), exc.end


codecs.register_error("tickbridge.question", _question_mark)


def resolve_encoding(value: Any) -> Encoding:
    """Coerce a host-supplied selector into an ``Encoding``.

    Unknown or malformed values fall back to ``Encoding.SYSTEM_DEFAULT``
    so a bad property never stops the tick loop.

    Examples
    --------
    >>> resolve_encoding(2)
    <Encoding.UTF8: 2>
    >>> resolve_encoding(42)
    <Encoding.SYSTEM_DEFAULT: 6>
    """
    try:
        return Encoding(int(value))
    except (TypeError, ValueError, OverflowError):
        logger.debug("Unknown encoding selector %r, using system default", value)
        return Encoding.SYSTEM_DEFAULT


def encode(text: str, encoding: Encoding | int) -> bytes:
    """Encode *text* for transmission.

    ``BINARY`` encodes as UTF-16LE and keeps only the low byte of every
    16-bit code unit, so ``"\\x01\\xff"`` becomes ``b"\\x01\\xff"``.
    Characters the target codec cannot represent are replaced.

    Parameters
    ----------
    text : str
        Payload to encode.
    encoding : Encoding | int
        Selector; malformed values are resolved via ``resolve_encoding``.

    Returns
    -------
    bytes

    Examples
    --------
    >>> encode("hi", Encoding.UTF16BE)
    b'\\x00h\\x00i'
    >>> encode("\\u0141", Encoding.BINARY)
    b'A'
    """
    selector = resolve_encoding(encoding)
    if selector is Encoding.BINARY:
        return text.encode(_CODECS[selector], "surrogatepass")[::2]
    return text.encode(_CODECS[selector], "replace")


def decode(data: bytes, encoding: Encoding | int) -> str:
    """Decode received bytes.

    There is no inverse of the ``BINARY`` truncation, so ``BINARY`` decodes
    as ``ASCII``. Bytes above 0x7F decode to ``"?"`` under ``ASCII``; invalid
    sequences in the other codecs become U+FFFD.

    Examples
    --------
    >>> decode(b"ok", Encoding.BINARY)
    'ok'
    >>> decode(b"\\x80\\xff", Encoding.BINARY)
    '??'
    """
    selector = resolve_encoding(encoding)
    if selector is Encoding.BINARY:
        selector = Encoding.ASCII
    if selector is Encoding.ASCII:
        return data.decode(_CODECS[selector], "tickbridge.question")
    return data.decode(_CODECS[selector], "replace")
