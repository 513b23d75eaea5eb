"""Tests for the frame model and frame text parsing."""

import pytest

from stomp_mcp.errors import EncodingError, ProtocolError
from stomp_mcp.protocol.commands import Command
from stomp_mcp.protocol.framing import Frame, NULL, parse_frame


def test_format_send_frame():
    """A SEND frame renders command, header, blank line, body and NUL."""
    frame = Frame("SEND", {"destination": "/queue/a"}, b"hello")
    assert frame.format() == "SEND\ndestination:/queue/a\n\nhello\x00"


def test_format_without_body():
    """Control frames end with the blank line followed by NUL."""
    frame = Frame("BEGIN", {"transaction": "tx1"})
    assert frame.format() == "BEGIN\ntransaction:tx1\n\n\x00"


def test_format_preserves_header_order():
    """Headers are written in insertion order."""
    frame = Frame("SEND", {"z": "1", "a": "2", "m": "3"})
    assert frame.format_headers() == "SEND\nz:1\na:2\nm:3\n\n"


def test_command_enum_accepted():
    """Command members are stored as their plain string value."""
    frame = Frame(Command.SUBSCRIBE)
    assert frame.command == "SUBSCRIBE"
    assert frame.format().startswith("SUBSCRIBE\n")


def test_text_body_is_encoded():
    """A str body is stored as UTF-8 bytes."""
    frame = Frame("SEND", body="héllo")
    assert frame.body == "héllo".encode("utf-8")
    assert frame.body_text == "héllo"


def test_headers_are_live():
    """Headers added after construction appear on the wire."""
    frame = Frame("DISCONNECT")
    frame.headers["receipt"] = "r-1"
    assert "receipt:r-1\n" in frame.format()


def test_to_bytes_keeps_binary_body():
    """Binary bodies are appended raw, never re-encoded."""
    body = bytes([0x00, 0xFF, 0x41, 0x0A, 0x80])
    frame = Frame("SEND", {"destination": "/queue/b"}, body)
    data = frame.to_bytes()
    assert data == b"SEND\ndestination:/queue/b\n\n" + body + NULL


def test_format_rejects_binary_body():
    """The text rendering needs a UTF-8 body."""
    frame = Frame("SEND", body=b"\xff\xfe")
    with pytest.raises(EncodingError):
        frame.format()


def test_to_dict_hex_for_binary():
    """Non-text bodies are shown as hex."""
    d = Frame("MESSAGE", {"message-id": "m1"}, b"\xff").to_dict()
    assert d["body"] == "ff"
    assert d["body_encoding"] == "hex"
    assert d["headers"] == {"message-id": "m1"}


def test_roundtrip_parse():
    """Formatting a frame and parsing it back gives an equal frame."""
    original = Frame(
        "SEND",
        {"destination": "/queue/a", "persistent": "true", "note": "a:b c"},
        "body text\nwith lines",
    )
    assert parse_frame(original.format()) == original


def test_roundtrip_empty_body():
    """Frames with no body round-trip with an empty body."""
    original = Frame("UNSUBSCRIBE", {"destination": "/topic/x"})
    parsed = parse_frame(original.format())
    assert parsed == original
    assert parsed.body == b""


def test_parse_keeps_nul_in_body():
    """A NUL not followed by LF is body data."""
    parsed = parse_frame(b"MESSAGE\nmessage-id:1\n\nab\x00Acd")
    assert parsed.body == b"ab\x00Acd"


def test_parse_skips_heartbeats():
    """Leading newlines before the command are ignored."""
    parsed = parse_frame("\n\nRECEIPT\nreceipt-id:7\n\n")
    assert parsed.command == "RECEIPT"
    assert parsed.headers == {"receipt-id": "7"}


def test_parse_first_header_wins():
    """A repeated header keeps its first value."""
    parsed = parse_frame("MESSAGE\nfoo:1\nfoo:2\n\n")
    assert parsed.headers == {"foo": "1"}


def test_parse_missing_blank_line():
    """An unterminated header block is a protocol error."""
    with pytest.raises(ProtocolError):
        parse_frame("SEND\ndestination:/queue/a")


def test_parse_invalid_header_line():
    """Header lines need a colon."""
    with pytest.raises(ProtocolError):
        parse_frame("SEND\nnocolon\n\n")


def test_parse_empty():
    """Input without a command line is rejected."""
    with pytest.raises(ProtocolError):
        parse_frame("")


def test_frame_repr():
    """Frame repr shows the command and body size."""
    r = repr(Frame("SEND", {"destination": "/queue/a"}, b"hello"))
    assert "SEND" in r
    assert "5 bytes" in r
