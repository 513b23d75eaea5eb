"""Transport layer: socket stream and the STOMP connection driver."""

from .stream import SocketStream
from .stomp_connection import StompConnection
