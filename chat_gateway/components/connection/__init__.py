"""
Connection components: transport keepalive.
"""

from chat_gateway.components.connection.heartbeat import handle_heartbeat, is_heartbeat

__all__ = [
    "handle_heartbeat",
    "is_heartbeat",
]
