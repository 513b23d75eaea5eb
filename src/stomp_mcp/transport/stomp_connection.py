"""Single-connection STOMP driver over a TCP byte stream.

The driver owns the stream and a private receive buffer. Every verb
builds a :class:`Frame`, serializes it and writes it; only CONNECT waits
for a reply. It is not safe for concurrent receives on one instance.
"""

from __future__ import annotations

import logging
import socket

from ..errors import ProtocolError, StompConnectionError
from ..protocol.commands import (
    Command,
    Headers,
    build_abort,
    build_ack,
    build_begin,
    build_commit,
    build_connect,
    build_connect_with_headers,
    build_disconnect,
    build_nack,
    build_send,
    build_subscribe,
    build_unsubscribe,
)
from ..protocol.framing import LF, NULL, Frame, decode_text, encode_text
from ..protocol.parser import (
    DEFAULT_VERSION,
    parse_connected,
    parse_error,
    unmarshal,
    version_tuple,
)
from .stream import SocketStream

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 61613
RECEIVE_TIMEOUT = 10.0  # seconds


class StompConnection:
    """Drives one STOMP conversation with a broker, one frame at a time.

    Usage::

        conn = StompConnection()
        conn.open("localhost", 61613)
        conn.connect("guest", "guest")
        conn.subscribe("/queue/a", "client")
        message = conn.receive()
        conn.ack(message)
        conn.disconnect()
        conn.close()
    """

    def __init__(self, version: str = DEFAULT_VERSION) -> None:
        self._stream: SocketStream | None = None
        self._input_buffer = bytearray()
        self._connected = False
        self.version = version

    def __enter__(self) -> StompConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def connected(self) -> bool:
        """True once a CONNECTED reply arrived on the current stream."""
        return self._connected

    @property
    def stream(self) -> SocketStream | None:
        return self._stream

    # ─── TRANSPORT ────────────────────────────────────────────────────

    def open(
        self,
        host: str | socket.socket | SocketStream = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float | None = None,
    ) -> StompConnection:
        """Open a TCP connection to the broker, or adopt an existing one.

        Args:
            host: Broker host name, or an already connected socket/stream.
            port: Broker port; ignored when adopting a socket.
            timeout: Optional connect timeout in seconds.

        Raises:
            StompConnectionError: If the host cannot be resolved or the
                connection is refused.
        """
        if self._stream is not None:
            self.close()

        if isinstance(host, SocketStream):
            stream = host
        elif isinstance(host, socket.socket):
            stream = SocketStream(host)
        else:
            try:
                sock = socket.create_connection((host, port), timeout=timeout)
            except OSError as e:
                raise StompConnectionError(
                    f"Could not connect to STOMP broker at {host}:{port}. "
                    f"Last error: {e}"
                ) from e
            stream = SocketStream(sock)
            logger.info("Opened connection to %s:%d", host, port)

        self._stream = stream
        self._input_buffer.clear()
        self._connected = False
        return self

    def close(self) -> None:
        """Close the transport. Calling it again is a no-op."""
        if self._stream is None:
            return

        try:
            self._stream.close()
        except OSError as e:
            logger.warning("Error closing connection: %s", e)
        finally:
            self._stream = None
            self._connected = False
            logger.info("Disconnected")

    def _require_stream(self) -> SocketStream:
        if self._stream is None:
            raise StompConnectionError("Not connected to broker")
        return self._stream

    # ─── FRAMING ──────────────────────────────────────────────────────

    def send_frame(self, data: str, body: bytes | None = None) -> None:
        """Write frame text, then optional raw body bytes, and flush.

        The two parts are written back to back so a binary body is never
        re-encoded as text.
        """
        stream = self._require_stream()
        stream.write(encode_text(data))
        if body is not None:
            stream.write(bytes(body))
        stream.flush()

    def receive_frame(self, timeout: float | None = RECEIVE_TIMEOUT) -> str:
        """Read raw frame text up to the next ``NUL LF`` terminator.

        A NUL followed by anything but LF is frame data: both bytes are
        kept. The terminator itself is not part of the returned text.

        Args:
            timeout: Deadline in seconds for the whole call, however the
                bytes trickle in.

        Raises:
            ProtocolError: If the stream ends before a terminator.
            StompTimeoutError: If the deadline passes first.
            EncodingError: If the frame is not valid UTF-8.
        """
        stream = self._require_stream()
        stream.set_read_timeout(timeout)
        buf = self._input_buffer
        pending_nul = False
        try:
            while True:
                c = stream.read_byte()
                if c < 0:
                    raise ProtocolError("Stream closed mid-frame")
                if pending_nul:
                    if c == LF[0]:
                        return decode_text(buf)
                    buf += NULL
                    buf.append(c)
                    pending_nul = False
                elif c == 0:
                    pending_nul = True
                else:
                    buf.append(c)
        finally:
            buf.clear()

    def receive(self, timeout: float | None = RECEIVE_TIMEOUT) -> Frame:
        """Read and decode one frame using the negotiated protocol version."""
        stream = self._require_stream()
        stream.set_read_timeout(timeout)
        frame = unmarshal(stream, self.version)
        logger.debug("Received %r", frame)
        return frame

    def _send(self, frame: Frame) -> None:
        logger.debug("Sending %r", frame)
        self.send_frame(frame.format())

    # ─── VERBS ────────────────────────────────────────────────────────

    def connect(
        self,
        login: str,
        passcode: str,
        client_id: str | None = None,
    ) -> None:
        """Send CONNECT with credentials and wait for CONNECTED.

        Raises:
            ProtocolError: If the broker replies with anything else. The
                reply body is included in the message and the reply frame
                is attached as ``frame``.
        """
        self._handshake(build_connect(login, passcode, client_id))

    def connect_with_headers(self, headers: dict[str, str]) -> None:
        """Send CONNECT with an arbitrary header mapping and wait for CONNECTED."""
        self._handshake(build_connect_with_headers(headers))

    def _handshake(self, frame: Frame) -> None:
        self._send(frame)
        reply = self.receive()
        if reply.command != Command.CONNECTED:
            error = parse_error(reply)
            detail = error.body if error else reply.body.decode("utf-8", errors="replace")
            raise ProtocolError(f"Not connected: {detail}", frame=reply)

        if Headers.VERSION in reply.headers:
            version = parse_connected(reply).version
            try:
                version_tuple(version)
            except ProtocolError as e:
                raise ProtocolError(f"Not connected: {e}", frame=reply) from None
            self.version = version
        self._connected = True
        logger.info("STOMP session established (protocol %s)", self.version)

    def disconnect(self, receipt_id: str | None = None) -> None:
        """Send DISCONNECT. The transport stays open until :meth:`close`."""
        self._send(build_disconnect(receipt_id))
        self._connected = False

    def send(
        self,
        destination: str,
        message: str,
        transaction: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Send a text message to ``destination``."""
        self._send(build_send(destination, message, transaction, headers))

    def send_bytes(
        self,
        destination: str,
        data: bytes,
        transaction: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Send a binary message; the body may contain NUL bytes.

        A ``content-length`` header is added so the receiver reads the body
        by length rather than up to the first NUL.
        """
        frame = build_send(destination, bytes(data), transaction, headers)
        frame.headers[Headers.CONTENT_LENGTH] = str(len(frame.body))
        logger.debug("Sending %r", frame)
        self.send_frame(frame.format_headers(), frame.body + NULL)

    def subscribe(
        self,
        destination: str,
        ack: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._send(build_subscribe(destination, ack, headers))

    def unsubscribe(
        self,
        destination: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._send(build_unsubscribe(destination, headers))

    def begin(self, transaction: str) -> None:
        self._send(build_begin(transaction))

    def commit(self, transaction: str) -> None:
        self._send(build_commit(transaction))

    def abort(self, transaction: str) -> None:
        self._send(build_abort(transaction))

    def ack(self, message: str | Frame, transaction: str | None = None) -> None:
        """Acknowledge a message by id or by its MESSAGE frame."""
        self._send(build_ack(message, transaction))

    def nack(self, message: str | Frame, transaction: str | None = None) -> None:
        self._send(build_nack(message, transaction))

    def keep_alive(self) -> None:
        """Write a bare newline heartbeat. Never waits for a reply."""
        stream = self._require_stream()
        stream.write(LF)
        stream.flush()
