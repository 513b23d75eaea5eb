"""Buffered byte stream over a connected TCP socket.

Reads are served from an internal buffer filled by ``recv``; writes are
buffered until :meth:`SocketStream.flush`, which hands everything to one
``sendall`` so a header block and its body reach the wire back to back.
"""

from __future__ import annotations

import logging
import socket
import time

from ..errors import StompConnectionError, StompTimeoutError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class SocketStream:
    """Readable/writable byte stream with a settable read deadline.

    The deadline covers reads only; writes always block until sent.

    Usage::

        stream = SocketStream(socket.create_connection((host, port)))
        stream.write(b"CONNECT\\n\\n\\x00")
        stream.flush()
        stream.set_read_timeout(10.0)
        first = stream.read_byte()
        stream.close()
    """

    def __init__(self, sock: socket.socket, read_size: int = READ_CHUNK_SIZE) -> None:
        self._sock = sock
        self._read_size = read_size
        self._rbuf = bytearray()
        self._wbuf = bytearray()
        self._closed = False
        self._deadline: float | None = None

    @property
    def sock(self) -> socket.socket:
        return self._sock

    @property
    def closed(self) -> bool:
        return self._closed

    def set_read_timeout(self, timeout: float | None) -> None:
        """Start a read deadline ``timeout`` seconds from now.

        Every blocking read until the next call shares this one deadline,
        so a peer trickling bytes cannot stretch it. ``None`` waits forever.
        """
        self._check_open()
        self._deadline = None if timeout is None else time.monotonic() + timeout

    def _check_open(self) -> None:
        if self._closed:
            raise StompConnectionError("Stream is closed")

    def _fill(self) -> bool:
        """Pull one chunk from the socket; False means the peer closed."""
        self._check_open()
        wait = None
        if self._deadline is not None:
            wait = self._deadline - time.monotonic()
            if wait <= 0:
                raise StompTimeoutError("Read deadline expired before a frame completed")
        try:
            self._sock.settimeout(wait)
            chunk = self._sock.recv(self._read_size)
        except socket.timeout as e:
            raise StompTimeoutError("Timed out waiting for data from broker") from e
        except OSError as e:
            raise StompConnectionError(f"Read failed: {e}") from e
        if not chunk:
            if self._closed:
                # close() was called while we were blocked in recv
                raise StompConnectionError("Stream closed during read")
            return False
        self._rbuf += chunk
        return True

    def read(self, n: int = 1) -> bytes:
        """Read up to ``n`` bytes, blocking for at least one.

        Returns:
            The bytes read, or ``b""`` once the peer has closed the stream.

        Raises:
            StompTimeoutError: If the read timeout elapses first.
            StompConnectionError: If the socket fails or is closed locally.
        """
        if not self._rbuf and not self._fill():
            return b""
        data = bytes(self._rbuf[:n])
        del self._rbuf[:n]
        return data

    def read_byte(self) -> int:
        """Read a single byte value, or -1 at end of stream."""
        data = self.read(1)
        return data[0] if data else -1

    def write(self, data: bytes) -> None:
        self._check_open()
        self._wbuf += data

    def flush(self) -> None:
        """Send all buffered output."""
        self._check_open()
        if not self._wbuf:
            return
        data = bytes(self._wbuf)
        self._wbuf.clear()
        try:
            self._sock.settimeout(None)
            self._sock.sendall(data)
        except OSError as e:
            raise StompConnectionError(f"Write failed: {e}") from e

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._rbuf.clear()
        self._wbuf.clear()
        try:
            # Wake any reader blocked in recv before releasing the descriptor
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Socket shutdown failed: %s", e)
        self._sock.close()
