"""Protocol layer: frame model, verb builders, and frame decoding."""

from .framing import Frame, parse_frame
from .commands import Command, Headers
from .parser import unmarshal, parse_response
