"""Structured frame decoding and typed views of broker replies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..errors import ProtocolError
from .commands import CLIENT_COMMANDS, SERVER_COMMANDS, Command, Headers
from .framing import Frame, HEADER_SEPARATOR, decode_text

DEFAULT_VERSION = "1.0"

MAX_COMMAND_LENGTH = 1024
MAX_HEADER_LENGTH = 1024 * 10
MAX_HEADERS = 1000
MAX_DATA_LENGTH = 1024 * 1024 * 100

_ESCAPES_11 = {"n": "\n", "c": ":", "\\": "\\"}
_ESCAPES_12 = dict(_ESCAPES_11, r="\r")

# Header values of these frames are never escaped
_UNESCAPED_COMMANDS = (Command.CONNECT.value, Command.CONNECTED.value)


class ByteSource(Protocol):
    """What :func:`unmarshal` needs from a stream."""

    def read(self, n: int = 1) -> bytes: ...

    def read_byte(self) -> int: ...


def version_tuple(version: str) -> tuple[int, ...]:
    """Split a version string such as ``1.2`` into integers."""
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        raise ProtocolError(f"Unsupported STOMP version {version!r}") from None


def decode_header(value: str, version: str = DEFAULT_VERSION) -> str:
    """Undo STOMP 1.1+ header escaping. 1.0 values pass through untouched."""
    v = version_tuple(version)
    if v < (1, 1) or "\\" not in value:
        return value
    escapes = _ESCAPES_12 if v >= (1, 2) else _ESCAPES_11

    out = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt not in escapes:
            raise ProtocolError(f"Invalid escape sequence in header value {value!r}")
        out.append(escapes[nxt])
    return "".join(out)


def _read_line(stream: ByteSource, max_length: int, what: str) -> bytes:
    line = bytearray()
    while True:
        c = stream.read_byte()
        if c < 0:
            raise ProtocolError(f"Stream closed while reading {what}")
        if c == 0x0A:
            return bytes(line)
        line.append(c)
        if len(line) > max_length:
            raise ProtocolError(f"The maximum {what} length was exceeded ({max_length})")


def _read_exact(stream: ByteSource, n: int) -> bytes:
    data = bytearray()
    while len(data) < n:
        chunk = stream.read(n - len(data))
        if not chunk:
            raise ProtocolError("Stream closed mid-frame while reading body")
        data += chunk
    return bytes(data)


def _read_until_null(stream: ByteSource) -> bytes:
    data = bytearray()
    while True:
        c = stream.read_byte()
        if c < 0:
            raise ProtocolError("Stream closed mid-frame while reading body")
        if c == 0:
            return bytes(data)
        data.append(c)
        if len(data) > MAX_DATA_LENGTH:
            raise ProtocolError(f"The maximum data length was exceeded ({MAX_DATA_LENGTH})")


def unmarshal(stream: ByteSource, version: str = DEFAULT_VERSION) -> Frame:
    """Read exactly one frame from ``stream``.

    Leading newlines (heartbeats, or the LF that follows a previous
    frame's NUL) are skipped. With a ``content-length`` header the body is
    read by length and may contain NUL bytes; otherwise it runs to the
    first NUL.

    Raises:
        ProtocolError: On EOF mid-frame, an unknown command, a malformed
            header, a bad content-length, or an exceeded size limit.
        EncodingError: If command or header text is not valid UTF-8.
    """
    strip_cr = version_tuple(version) >= (1, 2)

    line = b""
    while not line:
        line = _read_line(stream, MAX_COMMAND_LENGTH, "command")
        if strip_cr and line.endswith(b"\r"):
            line = line[:-1]
    command = decode_text(line)
    if command not in CLIENT_COMMANDS and command not in SERVER_COMMANDS:
        raise ProtocolError(f"Unknown STOMP command {command!r}")

    headers: dict[str, str] = {}
    count = 0
    while True:
        line = _read_line(stream, MAX_HEADER_LENGTH, "header")
        if strip_cr and line.endswith(b"\r"):
            line = line[:-1]
        if not line:
            break
        count += 1
        if count > MAX_HEADERS:
            raise ProtocolError(f"The maximum number of headers was exceeded ({MAX_HEADERS})")
        name, sep, value = decode_text(line).partition(HEADER_SEPARATOR)
        if not sep:
            raise ProtocolError(f"Unable to parse header line [{line!r}]")
        if command not in _UNESCAPED_COMMANDS:
            name = decode_header(name, version)
            value = decode_header(value, version)
        headers.setdefault(name, value)

    length = headers.get(Headers.CONTENT_LENGTH)
    if length is not None:
        try:
            size = int(length.strip())
        except ValueError:
            raise ProtocolError(f"Specified content-length is not a valid integer: {length!r}") from None
        if size < 0 or size > MAX_DATA_LENGTH:
            raise ProtocolError(f"Specified content-length {size} is out of range")
        body = _read_exact(stream, size)
        if stream.read_byte() != 0:
            raise ProtocolError("Expected frame terminator after content-length body")
    else:
        body = _read_until_null(stream)

    return Frame(command=command, headers=headers, body=body)


@dataclass
class ConnectedResponse:
    """Parsed CONNECTED reply."""

    version: str
    session: str | None = None
    server: str | None = None
    heart_beat: str | None = None


@dataclass
class MessageResponse:
    """Parsed MESSAGE delivery."""

    destination: str | None
    message_id: str | None
    subscription: str | None
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"MessageResponse(destination={self.destination!r}, "
            f"message_id={self.message_id!r}, body_len={len(self.body)})"
        )


@dataclass
class ReceiptResponse:
    """Parsed RECEIPT reply."""

    receipt_id: str | None


@dataclass
class ErrorResponse:
    """Parsed ERROR reply."""

    message: str
    body: str


def parse_connected(frame: Frame) -> ConnectedResponse | None:
    """Parse a CONNECTED frame; a missing version header means 1.0."""
    if frame.command != Command.CONNECTED:
        return None
    h = frame.headers
    return ConnectedResponse(
        version=h.get(Headers.VERSION, DEFAULT_VERSION),
        session=h.get(Headers.SESSION),
        server=h.get(Headers.SERVER),
        heart_beat=h.get(Headers.HEART_BEAT),
    )


def parse_message(frame: Frame) -> MessageResponse | None:
    if frame.command != Command.MESSAGE:
        return None
    h = frame.headers
    return MessageResponse(
        destination=h.get(Headers.DESTINATION),
        message_id=h.get(Headers.MESSAGE_ID),
        subscription=h.get(Headers.SUBSCRIPTION),
        body=frame.body,
        headers=dict(h),
    )


def parse_receipt(frame: Frame) -> ReceiptResponse | None:
    if frame.command != Command.RECEIPT:
        return None
    return ReceiptResponse(receipt_id=frame.headers.get(Headers.RECEIPT_ID))


def parse_error(frame: Frame) -> ErrorResponse | None:
    """Parse an ERROR frame. Undecodable bodies are shown with replacements."""
    if frame.command != Command.ERROR:
        return None
    return ErrorResponse(
        message=frame.headers.get(Headers.MESSAGE, ""),
        body=frame.body.decode("utf-8", errors="replace"),
    )


def parse_response(frame: Frame):
    """Auto-dispatch a frame to the appropriate reply parser.

    Returns the parsed reply dataclass, or the raw Frame if no specific
    parser matches.
    """
    parsers = {
        Command.CONNECTED.value: parse_connected,
        Command.MESSAGE.value: parse_message,
        Command.RECEIPT.value: parse_receipt,
        Command.ERROR.value: parse_error,
    }
    parser = parsers.get(frame.command)
    if parser:
        result = parser(frame)
        if result is not None:
            return result
    return frame
