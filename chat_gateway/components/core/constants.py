"""
Chat Gateway Constants.

Store key, pub/sub channel names, transport event names and
WebSocket close codes shared by every component.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "StoreKeys",
    "Channels",
    "TransportEvents",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "ALLOWED_METHODS",
    "ALLOWED_HEADERS",
    "validate_websocket_origin",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    GOING_AWAY = 1001  # Server shutting down or client navigating away
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process


class StoreKeys:
    """Redis keys holding cluster-wide state."""

    # Shared number of open client sockets across all instances
    CONNECTION_COUNT: Final[str] = "chat:connection-count"


class Channels:
    """Redis pub/sub channels. Each carries a single string payload."""

    CONNECTION_COUNT_UPDATED: Final[str] = "chat:connection-count-updated"
    NEW_MESSAGE: Final[str] = "chat:new-message"

    ALL: Final[tuple[str, ...]] = (CONNECTION_COUNT_UPDATED, NEW_MESSAGE)


class TransportEvents:
    """Event names on the client WebSocket envelope."""

    CONNECTION_COUNT_UPDATED: Final[str] = "connection-count-updated"
    NEW_MESSAGE: Final[str] = "new-message"


# Keepalive frames
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'

# CORS
ALLOWED_METHODS: Final[list[str]] = ["GET", "POST", "PUT", "PATCH", "DELETE"]
ALLOWED_HEADERS: Final[list[str]] = ["Content-Type", "Authorization"]


def validate_websocket_origin(origin: str | None, allowed_origin: str) -> bool:
    """
    Validate a WebSocket Origin header against the configured origin.

    Browsers always send Origin on WebSocket upgrades, so a missing header
    means a non-browser client and is allowed. ``*`` allows any origin.

    Args:
        origin: The Origin header value, or None if not present.
        allowed_origin: Configured CORS origin.

    Returns:
        True if origin is allowed, False otherwise.
    """
    if not origin:
        return True
    if allowed_origin.strip() == "*":
        return True
    return origin.rstrip("/") == allowed_origin.strip().rstrip("/")
