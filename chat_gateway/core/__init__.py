"""
Core modules for the chat gateway.

- connection/ - Local fan-out to WebSocket connections
"""

from chat_gateway.core.connection import ConnectionBroadcaster, is_ws_connected

__all__ = [
    "ConnectionBroadcaster",
    "is_ws_connected",
]
