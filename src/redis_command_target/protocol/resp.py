"""RESP2 wire codec.

Requests are always sent as an array of bulk strings:

    *3\\r\\n$3\\r\\nSET\\r\\n$1\\r\\nk\\r\\n$1\\r\\nv\\r\\n

Replies may be any RESP2 kind:
- Simple string:  +OK\\r\\n
- Error:          -ERR message\\r\\n
- Integer:        :42\\r\\n
- Bulk string:    $5\\r\\nhello\\r\\n   ($-1\\r\\n is nil)
- Array:          *2\\r\\n...           (*-1\\r\\n is a null array)

RESPParser is incremental: feed it whatever the socket returned and pull
complete values out with gets().
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from ..errors import ProtocolError
from .values import RESPKind, RESPValue

CRLF = b"\r\n"


def _bulk_frame(payload: bytes) -> bytes:
    return b"$" + str(len(payload)).encode("ascii") + CRLF + payload + CRLF


def encode_command(values: Iterable[RESPValue]) -> bytes:
    """Encode a request as a RESP array of bulk strings.

    Integers are sent as their decimal text, as the server only accepts
    bulk strings inside a request.

    Raises:
        ValueError: If a value has no request representation (nil, arrays, errors)
    """
    frames: list[bytes] = []
    for value in values:
        if value.kind == RESPKind.INTEGER:
            frames.append(_bulk_frame(str(value.payload).encode("ascii")))
        elif value.kind in (RESPKind.BULK_STRING, RESPKind.SIMPLE_STRING):
            frames.append(_bulk_frame(value.bytes_value or b""))
        else:
            raise ValueError(f"Cannot send {value.describe()} as a request argument")
    return b"*" + str(len(frames)).encode("ascii") + CRLF + b"".join(frames)


def encode_value(value: RESPValue) -> bytes:
    """Encode any value using its own RESP kind (used for replies)."""
    if value.kind == RESPKind.NIL:
        return b"$-1\r\n"
    if value.kind == RESPKind.SIMPLE_STRING:
        return b"+" + str(value.payload).encode("utf-8") + CRLF
    if value.kind == RESPKind.ERROR:
        return b"-" + str(value.payload).encode("utf-8") + CRLF
    if value.kind == RESPKind.INTEGER:
        return b":" + str(value.payload).encode("ascii") + CRLF
    if value.kind == RESPKind.BULK_STRING:
        return _bulk_frame(value.payload)  # type: ignore[arg-type]
    items = value.items
    if items is None:
        return b"*-1\r\n"
    return b"*" + str(len(items)).encode("ascii") + CRLF + b"".join(encode_value(i) for i in items)


class _Incomplete(Exception):
    """Raised internally when the buffer does not hold a complete element yet."""


class RESPParser:
    """Incremental RESP2 reply parser.

    Parsing resumes where the previous call stopped: elements of an array
    that already arrived are kept on a stack and never parsed twice, so a
    large reply split over many chunks is parsed in linear time.

    Usage:
        parser = RESPParser()
        parser.feed(chunk)
        for value in parser:
            ...
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._pos = 0
        # Open arrays: (expected element count, elements parsed so far)
        self._stack: list[tuple[int, list[RESPValue]]] = []

    def feed(self, data: bytes) -> None:
        """Append raw bytes received from the wire."""
        self._buffer.extend(data)

    @property
    def buffered(self) -> int:
        """Number of bytes waiting for a complete value."""
        return len(self._buffer)

    def gets(self) -> RESPValue | None:
        """Return the next complete value, or None if more data is needed.

        Raises:
            ProtocolError: If the buffered data is not valid RESP
        """
        while True:
            try:
                element = self._parse_element()
            except _Incomplete:
                return None

            if isinstance(element, int):
                self._stack.append((element, []))
                continue

            value = self._close_arrays(element)
            if value is not None:
                del self._buffer[: self._pos]
                self._pos = 0
                return value

    def __iter__(self) -> Iterator[RESPValue]:
        while True:
            value = self.gets()
            if value is None:
                return
            yield value

    def _close_arrays(self, value: RESPValue) -> RESPValue | None:
        """Attach a value to the open arrays; return it once the top level is complete."""
        while self._stack:
            count, items = self._stack[-1]
            items.append(value)
            if len(items) < count:
                return None
            self._stack.pop()
            value = RESPValue.array(items)
        return value

    def _read_line(self, pos: int) -> tuple[bytes, int]:
        end = self._buffer.find(CRLF, pos)
        if end < 0:
            raise _Incomplete
        return bytes(self._buffer[pos:end]), end + 2

    def _read_int(self, line: bytes) -> int:
        try:
            return int(line)
        except ValueError:
            raise ProtocolError(f"Invalid integer in reply: {line!r}") from None

    def _parse_element(self) -> RESPValue | int:
        """Parse one element at the current position and advance past it.

        Returns a complete value, or the element count of a non-empty array
        whose elements follow.
        """
        pos = self._pos
        if pos >= len(self._buffer):
            raise _Incomplete
        marker = self._buffer[pos : pos + 1]
        line, pos = self._read_line(pos + 1)

        value: RESPValue | int
        if marker == b"+":
            value = RESPValue.simple(line.decode("utf-8", errors="replace"))
        elif marker == b"-":
            value = RESPValue.error(line.decode("utf-8", errors="replace"))
        elif marker == b":":
            value = RESPValue.integer(self._read_int(line))
        elif marker == b"$":
            length = self._read_int(line)
            if length < 0:
                value = RESPValue.nil()
            else:
                end = pos + length
                if len(self._buffer) < end + 2:
                    raise _Incomplete
                if self._buffer[end : end + 2] != CRLF:
                    raise ProtocolError("Bulk string is not terminated by CRLF")
                value = RESPValue.bulk(bytes(self._buffer[pos:end]))
                pos = end + 2
        elif marker == b"*":
            count = self._read_int(line)
            if count < 0:
                value = RESPValue.array(None)
            elif count == 0:
                value = RESPValue.array([])
            else:
                value = count
        else:
            raise ProtocolError(f"Unknown reply type marker: {bytes(marker)!r}")

        self._pos = pos
        return value
