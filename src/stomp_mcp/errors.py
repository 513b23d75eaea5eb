"""Error kinds raised by the STOMP driver.

None of these are recovered inside the driver; they propagate to the
caller of the verb that triggered them. The connection and timeout kinds
also derive from the matching builtins so callers can catch either.
"""

from __future__ import annotations


class StompError(Exception):
    """Base class for STOMP driver errors."""


class StompConnectionError(StompError, ConnectionError):
    """The transport could not be opened, or failed during an operation."""


class StompTimeoutError(StompError, TimeoutError):
    """A receive did not complete a frame before its deadline."""


class ProtocolError(StompError):
    """The peer broke framing or sequencing rules.

    ``frame`` holds the offending reply when one was decoded, e.g. the
    ERROR frame a broker sent instead of CONNECTED.
    """

    def __init__(self, message: str, frame=None) -> None:
        super().__init__(message)
        self.frame = frame


class EncodingError(StompError, ValueError):
    """Text could not be encoded or decoded as UTF-8."""
