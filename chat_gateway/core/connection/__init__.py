"""
Connection management modules.
"""

from chat_gateway.core.connection.broadcaster import (
    ConnectionBroadcaster,
    is_ws_connected,
)

__all__ = [
    "ConnectionBroadcaster",
    "is_ws_connected",
]
