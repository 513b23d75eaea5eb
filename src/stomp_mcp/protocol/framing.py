"""STOMP frame model and its text/byte serialization.

Frame layout::

    +-----------+------------------------+-------+------------------+-----+
    | COMMAND\\n | name:value\\n  (0..n)   |  \\n   |  body (optional) | NUL |
    +-----------+------------------------+-------+------------------+-----+

- Command and header text are UTF-8.
- Headers are written in insertion order, one per line.
- A blank line separates the header block from the body.
- A single NUL byte ends the frame. Brokers follow it with a LF, and the
  ``NUL LF`` pair is what the receive side treats as the terminator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import EncodingError, ProtocolError

NULL = b"\x00"
LF = b"\n"
FRAME_TERMINATOR = NULL + LF
HEADER_SEPARATOR = ":"


def encode_text(text: str) -> bytes:
    """Encode command/header text as UTF-8."""
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"cannot encode {text!r} as UTF-8: {e}") from e


def decode_text(data: bytes) -> str:
    """Decode wire bytes as UTF-8."""
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"invalid UTF-8 in frame data: {e}") from e


@dataclass
class Frame:
    """A single STOMP frame.

    ``headers`` is the live mapping, so callers may add protocol headers
    (e.g. ``receipt``) after construction and before sending. Header values
    are not validated here.
    """

    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        # Accept Command members and plain strings alike
        self.command = str(getattr(self.command, "value", self.command))
        if isinstance(self.body, str):
            self.body = encode_text(self.body)
        elif self.body is None:
            self.body = b""

    def __repr__(self) -> str:
        return (
            f"Frame(command={self.command}, headers={self.headers!r}, "
            f"body={len(self.body)} bytes)"
        )

    @property
    def body_text(self) -> str:
        return decode_text(self.body)

    def format_headers(self) -> str:
        """Render the command line, header lines and the blank separator."""
        lines = [self.command, "\n"]
        for name, value in self.headers.items():
            lines.append(f"{name}{HEADER_SEPARATOR}{value}\n")
        lines.append("\n")
        return "".join(lines)

    def format(self) -> str:
        """Render the whole frame as text, ending with NUL.

        Only valid for textual bodies; binary payloads go through
        :meth:`to_bytes` or the two-part write on the connection.
        """
        return self.format_headers() + self.body_text + "\x00"

    def to_bytes(self) -> bytes:
        """Encoded header block, then the raw body, then NUL."""
        return encode_text(self.format_headers()) + self.body + NULL

    def to_dict(self) -> dict[str, Any]:
        try:
            body: str = self.body_text
            encoding = "utf-8"
        except EncodingError:
            body = self.body.hex()
            encoding = "hex"
        return {
            "command": self.command,
            "headers": dict(self.headers),
            "body": body,
            "body_encoding": encoding,
        }


def parse_frame(data: str | bytes) -> Frame:
    """Parse frame text into a Frame.

    Accepts the text produced by :meth:`Frame.format` or returned by
    ``StompConnection.receive_frame``. A single trailing NUL is dropped if
    present, and leading heartbeat newlines are skipped. The first
    occurrence of a repeated header wins.

    Raises:
        ProtocolError: If the command line or the header block is malformed.
        EncodingError: If the command or a header is not valid UTF-8.
    """
    if isinstance(data, str):
        data = encode_text(data)
    data = bytes(data).lstrip(LF)
    if data.endswith(NULL):
        data = data[:-1]

    pos = data.find(LF)
    if pos <= 0:
        raise ProtocolError("frame has no command line")
    command = decode_text(data[:pos])

    headers: dict[str, str] = {}
    while True:
        end = data.find(LF, pos + 1)
        if end < 0:
            raise ProtocolError("frame header block is not terminated")
        line = data[pos + 1 : end]
        pos = end
        if not line:
            break
        name, sep, value = decode_text(line).partition(HEADER_SEPARATOR)
        if not sep:
            raise ProtocolError(f"invalid header line: {line!r}")
        headers.setdefault(name, value)

    return Frame(command=command, headers=headers, body=data[pos + 1 :])
