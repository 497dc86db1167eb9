"""
Core components: constants and connection context.
"""

from chat_gateway.components.core.constants import (
    WSCloseCode,
    StoreKeys,
    Channels,
    TransportEvents,
    MSG_PING_PLAIN,
    MSG_PING_JSON,
    MSG_PONG_JSON,
    validate_websocket_origin,
)
from chat_gateway.components.core.context import ConnectionContext, sanitize_log_data

__all__ = [
    "WSCloseCode",
    "StoreKeys",
    "Channels",
    "TransportEvents",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "validate_websocket_origin",
    "ConnectionContext",
    "sanitize_log_data",
]
