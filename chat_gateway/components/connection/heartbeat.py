"""
Transport keepalive.

Clients may send a ping frame to keep intermediaries from closing an
idle socket. Pings are answered in place and never reach the relay.
"""

from __future__ import annotations

from fastapi import WebSocket

from shared.config.logging import get_logger
from chat_gateway.components.core.constants import (
    MSG_PING_PLAIN,
    MSG_PING_JSON,
    MSG_PONG_JSON,
)

logger = get_logger(__name__)


def is_heartbeat(data: str) -> bool:
    return data == MSG_PING_PLAIN or data == MSG_PING_JSON


async def handle_heartbeat(ws: WebSocket, data: str) -> bool:
    """
    Respond to ping messages with pong.

    Supports both plain text and JSON formatted pings. Only expected
    connection errors are swallowed; the endpoint's receive loop
    notices the closed socket on its own.

    Args:
        ws: The WebSocket connection.
        data: The received message data.

    Returns:
        True if message was a heartbeat and was handled, False otherwise.
    """
    if not is_heartbeat(data):
        return False

    try:
        await ws.send_text(MSG_PONG_JSON)
    except (ConnectionError, RuntimeError, OSError) as e:
        logger.debug("Heartbeat response not delivered", error=type(e).__name__)
    return True
