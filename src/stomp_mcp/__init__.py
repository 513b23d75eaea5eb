"""STOMP protocol driver with a Model Context Protocol front end."""

from .errors import (
    StompError,
    StompConnectionError,
    StompTimeoutError,
    ProtocolError,
    EncodingError,
)
from .protocol.framing import Frame
from .transport.stomp_connection import StompConnection

__version__ = "0.1.0"
