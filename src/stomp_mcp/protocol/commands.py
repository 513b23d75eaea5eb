"""STOMP verbs, header names and per-verb frame builders.

Each builder returns a :class:`Frame` whose header mapping is ready to
send. Caller-supplied header dicts are copied; the verb's own headers are
applied last and win on a name clash.
"""

from __future__ import annotations

from enum import Enum

from .framing import Frame


class Command(str, Enum):
    """Frame commands, client verbs first, then server replies."""

    CONNECT = "CONNECT"
    STOMP = "STOMP"
    SEND = "SEND"
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    BEGIN = "BEGIN"
    COMMIT = "COMMIT"
    ABORT = "ABORT"
    ACK = "ACK"
    NACK = "NACK"
    DISCONNECT = "DISCONNECT"

    CONNECTED = "CONNECTED"
    MESSAGE = "MESSAGE"
    RECEIPT = "RECEIPT"
    ERROR = "ERROR"


CLIENT_COMMANDS = frozenset(
    c.value for c in Command
    if c not in (Command.CONNECTED, Command.MESSAGE, Command.RECEIPT, Command.ERROR)
)
SERVER_COMMANDS = frozenset(
    c.value for c in (Command.CONNECTED, Command.MESSAGE, Command.RECEIPT, Command.ERROR)
)


class Headers:
    """Header names used by the builders and reply parsers."""

    DESTINATION = "destination"
    TRANSACTION = "transaction"
    ACK_MODE = "ack"
    MESSAGE_ID = "message-id"
    SUBSCRIPTION = "subscription"
    ID = "id"
    RECEIPT_REQUESTED = "receipt"
    RECEIPT_ID = "receipt-id"
    CONTENT_LENGTH = "content-length"
    CONTENT_TYPE = "content-type"
    LOGIN = "login"
    PASSCODE = "passcode"
    CLIENT_ID = "client-id"
    SESSION = "session"
    VERSION = "version"
    ACCEPT_VERSION = "accept-version"
    HOST = "host"
    HEART_BEAT = "heart-beat"
    SERVER = "server"
    MESSAGE = "message"


# Acknowledgement modes accepted by SUBSCRIBE
ACK_MODES = ("auto", "client", "client-individual")


def _merge(headers: dict[str, str] | None) -> dict[str, str]:
    return dict(headers) if headers else {}


def build_connect_with_headers(headers: dict[str, str]) -> Frame:
    """Build a CONNECT frame carrying exactly ``headers``."""
    return Frame(Command.CONNECT, _merge(headers))


def build_connect(
    login: str,
    passcode: str,
    client_id: str | None = None,
) -> Frame:
    """Build a CONNECT frame with credentials.

    Args:
        login: Broker user name.
        passcode: Broker password.
        client_id: Optional durable client identifier.
    """
    headers = {Headers.LOGIN: login, Headers.PASSCODE: passcode}
    if client_id is not None:
        headers[Headers.CLIENT_ID] = client_id
    return build_connect_with_headers(headers)


def build_disconnect(receipt_id: str | None = None) -> Frame:
    """Build a DISCONNECT frame, optionally requesting a receipt."""
    frame = Frame(Command.DISCONNECT)
    if receipt_id:
        frame.headers[Headers.RECEIPT_REQUESTED] = receipt_id
    return frame


def build_send(
    destination: str,
    body: str | bytes = b"",
    transaction: str | None = None,
    headers: dict[str, str] | None = None,
) -> Frame:
    """Build a SEND frame.

    Args:
        destination: Target queue or topic, e.g. ``/queue/a``.
        body: Message body; text is encoded as UTF-8.
        transaction: Optional transaction id the send belongs to.
        headers: Extra headers, e.g. ``persistent`` or ``receipt``.
    """
    merged = _merge(headers)
    merged[Headers.DESTINATION] = destination
    if transaction is not None:
        merged[Headers.TRANSACTION] = transaction
    return Frame(Command.SEND, merged, body)


def build_subscribe(
    destination: str,
    ack: str | None = None,
    headers: dict[str, str] | None = None,
) -> Frame:
    """Build a SUBSCRIBE frame.

    Args:
        destination: Queue or topic to subscribe to.
        ack: Acknowledgement mode (``auto``, ``client``, ``client-individual``).
        headers: Extra headers, e.g. ``id`` or ``selector``.
    """
    merged = _merge(headers)
    merged[Headers.DESTINATION] = destination
    if ack is not None:
        merged[Headers.ACK_MODE] = ack
    return Frame(Command.SUBSCRIBE, merged)


def build_unsubscribe(
    destination: str,
    headers: dict[str, str] | None = None,
) -> Frame:
    """Build an UNSUBSCRIBE frame for ``destination``."""
    merged = _merge(headers)
    merged[Headers.DESTINATION] = destination
    return Frame(Command.UNSUBSCRIBE, merged)


def _build_transaction(command: Command, transaction: str) -> Frame:
    return Frame(command, {Headers.TRANSACTION: transaction})


def build_begin(transaction: str) -> Frame:
    return _build_transaction(Command.BEGIN, transaction)


def build_commit(transaction: str) -> Frame:
    return _build_transaction(Command.COMMIT, transaction)


def build_abort(transaction: str) -> Frame:
    return _build_transaction(Command.ABORT, transaction)


def message_id_of(message: str | Frame) -> str | None:
    """Return the message id, taking it from a MESSAGE frame if given one."""
    if isinstance(message, Frame):
        return message.headers.get(Headers.MESSAGE_ID)
    return message


def build_ack(message: str | Frame, transaction: str | None = None) -> Frame:
    """Build an ACK frame.

    Args:
        message: A message id, or the MESSAGE frame being acknowledged.
        transaction: Optional transaction id the ack belongs to.
    """
    message_id = message_id_of(message)
    if message_id is None:
        raise ValueError("Frame has no message-id header to acknowledge")
    headers = {Headers.MESSAGE_ID: message_id}
    if transaction is not None:
        headers[Headers.TRANSACTION] = transaction
    return Frame(Command.ACK, headers)


def build_nack(message: str | Frame, transaction: str | None = None) -> Frame:
    """Build a NACK frame; same headers as :func:`build_ack`."""
    frame = build_ack(message, transaction)
    frame.command = Command.NACK.value
    return frame
