"""MCP server entry point for the STOMP driver.

Exposes the STOMP verbs as tools, plus connection status and protocol
resources, via the Model Context Protocol using the official Python MCP
SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import StompTimeoutError
from .protocol.commands import ACK_MODES, CLIENT_COMMANDS, SERVER_COMMANDS
from .protocol.parser import parse_message, parse_receipt
from .transport.stomp_connection import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    RECEIVE_TIMEOUT,
    StompConnection,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "stomp",
    instructions="MCP server driving a STOMP message broker one frame at a time",
)

# Global connection state
_connection: StompConnection | None = None
_broker: dict[str, Any] = {}


def _get_connection() -> StompConnection:
    """Get the open broker connection, raising if there is none."""
    if _connection is None or not _connection.is_open:
        raise RuntimeError(
            "Not connected to a broker. Use the 'connect' tool first."
        )
    return _connection


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    login: str,
    passcode: str,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    client_id: str | None = None,
) -> dict[str, Any]:
    """Open a TCP connection to a STOMP broker and perform the CONNECT handshake.

    Args:
        login: Broker user name.
        passcode: Broker password.
        host: Broker host (default localhost).
        port: Broker STOMP port (default 61613).
        client_id: Optional durable client id.
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "broker": f"{_broker.get('host')}:{_broker.get('port')}",
        }

    if _connection is not None:
        _connection.close()

    conn = StompConnection()
    conn.open(host, port)
    try:
        conn.connect(login, passcode, client_id)
    except Exception:
        conn.close()
        raise

    _connection = conn
    _broker.update(host=host, port=port)
    return {"connected": True, "broker": f"{host}:{port}", "version": conn.version}


@mcp.tool()
def disconnect(receipt_id: str | None = None) -> dict[str, Any]:
    """Send DISCONNECT and close the connection.

    Args:
        receipt_id: If given, wait for the broker's RECEIPT before closing.
    """
    global _connection
    if _connection is None:
        return {"disconnected": True}

    result: dict[str, Any] = {"disconnected": True}
    try:
        if _connection.is_open:
            _connection.disconnect(receipt_id)
            if receipt_id:
                try:
                    receipt = parse_receipt(_connection.receive())
                    result["receipt"] = receipt.receipt_id if receipt else None
                except StompTimeoutError:
                    result["receipt"] = None
    finally:
        _connection.close()
        _connection = None
        _broker.clear()
    return result


# ─── MESSAGING TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def send(
    destination: str,
    body: str,
    transaction: str | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Send a text message.

    Args:
        destination: Queue or topic, e.g. /queue/orders.
        body: Message text.
        transaction: Optional transaction id from 'begin'.
        headers: Extra STOMP headers, e.g. {"persistent": "true"}.
    """
    conn = _get_connection()
    conn.send(destination, body, transaction, headers)
    return {"sent": True, "destination": destination, "bytes": len(body.encode("utf-8"))}


@mcp.tool()
def subscribe(
    destination: str,
    ack: str | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Subscribe to a destination.

    Args:
        destination: Queue or topic to subscribe to.
        ack: Ack mode: auto, client or client-individual.
        headers: Extra STOMP headers, e.g. {"id": "sub-1"}.
    """
    if ack is not None and ack not in ACK_MODES:
        return {"error": f"Unknown ack mode '{ack}'. Valid: {list(ACK_MODES)}"}

    conn = _get_connection()
    conn.subscribe(destination, ack, headers)
    return {"subscribed": True, "destination": destination, "ack": ack or "auto"}


@mcp.tool()
def unsubscribe(destination: str, headers: dict[str, str] | None = None) -> dict[str, Any]:
    """Stop a subscription.

    Args:
        destination: Destination previously subscribed to.
        headers: Extra STOMP headers, e.g. {"id": "sub-1"}.
    """
    conn = _get_connection()
    conn.unsubscribe(destination, headers)
    return {"unsubscribed": True, "destination": destination}


@mcp.tool()
def receive(timeout: float = RECEIVE_TIMEOUT) -> dict[str, Any]:
    """Wait for the next frame from the broker and return it decoded.

    Args:
        timeout: Seconds to wait before giving up (default 10).
    """
    conn = _get_connection()
    try:
        frame = conn.receive(timeout)
    except StompTimeoutError:
        return {"error": f"No frame received within {timeout} seconds"}

    result = frame.to_dict()
    message = parse_message(frame)
    if message is not None:
        result["message_id"] = message.message_id
    return result


@mcp.tool()
def receive_raw(timeout: float = RECEIVE_TIMEOUT) -> dict[str, Any]:
    """Read raw frame text up to the next NUL LF terminator.

    Args:
        timeout: Seconds to wait before giving up (default 10).
    """
    conn = _get_connection()
    try:
        text = conn.receive_frame(timeout)
    except StompTimeoutError:
        return {"error": f"No frame received within {timeout} seconds"}
    return {"frame": text}


@mcp.tool()
def ack(message_id: str, transaction: str | None = None) -> dict[str, Any]:
    """Acknowledge a message received on a client-ack subscription.

    Args:
        message_id: The message-id header of the MESSAGE frame.
        transaction: Optional transaction id.
    """
    conn = _get_connection()
    conn.ack(message_id, transaction)
    return {"acked": message_id}


@mcp.tool()
def nack(message_id: str, transaction: str | None = None) -> dict[str, Any]:
    """Reject a message (STOMP 1.1+ brokers).

    Args:
        message_id: The message-id header of the MESSAGE frame.
        transaction: Optional transaction id.
    """
    conn = _get_connection()
    conn.nack(message_id, transaction)
    return {"nacked": message_id}


# ─── TRANSACTION TOOLS ───────────────────────────────────────────────

@mcp.tool()
def begin(transaction: str) -> dict[str, Any]:
    """Start a transaction; pass its id to send/ack, then commit or abort."""
    _get_connection().begin(transaction)
    return {"transaction": transaction, "state": "begun"}


@mcp.tool()
def commit(transaction: str) -> dict[str, Any]:
    """Commit a transaction."""
    _get_connection().commit(transaction)
    return {"transaction": transaction, "state": "committed"}


@mcp.tool()
def abort(transaction: str) -> dict[str, Any]:
    """Roll back a transaction."""
    _get_connection().abort(transaction)
    return {"transaction": transaction, "state": "aborted"}


@mcp.tool()
def keep_alive() -> dict[str, bool]:
    """Send a heartbeat newline to the broker."""
    _get_connection().keep_alive()
    return {"sent": True}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("stomp://connection/status")
def resource_connection_status() -> str:
    """Connection state, broker address and protocol version."""
    if _connection is None or not _connection.is_open:
        return json.dumps({"open": False, "connected": False})

    return json.dumps({
        "open": True,
        "connected": _connection.connected,
        "host": _broker.get("host"),
        "port": _broker.get("port"),
        "version": _connection.version,
    })


@mcp.resource("stomp://protocol/commands")
def resource_protocol_commands() -> str:
    """STOMP commands understood by the driver, and SUBSCRIBE ack modes."""
    return json.dumps({
        "client": sorted(CLIENT_COMMANDS),
        "server": sorted(SERVER_COMMANDS),
        "ack_modes": list(ACK_MODES),
    }, indent=2)


# ─── PROMPTS ─────────────────────────────────────────────────────────

@mcp.prompt()
def consume_queue(destination: str) -> str:
    """Drain messages from a queue with client acknowledgements.

    Args:
        destination: Queue to consume, e.g. /queue/orders.
    """
    return f"""Consume messages from {destination}.
Steps:
- subscribe to {destination} with ack mode "client"
- call receive repeatedly; for each MESSAGE frame, summarize the body
- ack each message by its message_id once handled
- stop when receive reports that no frame arrived in time
- unsubscribe from {destination}"""


@mcp.prompt()
def transactional_send(destination: str) -> str:
    """Send a batch of messages atomically.

    Args:
        destination: Target queue or topic.
    """
    return f"""Send several messages to {destination} as one unit.
Steps:
- begin a transaction with a fresh id, e.g. "tx-1"
- send each message with that transaction id
- commit when every send succeeded, otherwise abort

Nothing is delivered to consumers before commit."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
