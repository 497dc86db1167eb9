"""
Chat Gateway Components.

Organized into domain-specific modules:
- core/       - Constants and connection context
- counter/    - Cluster-wide connection counter
- redis/      - Lua scripts for atomic store operations
- events/     - Outbound value objects and inbound schema
- connection/ - Transport keepalive
- endpoints/  - WebSocket endpoint handler
"""

from chat_gateway.components.core.constants import (
    WSCloseCode,
    StoreKeys,
    Channels,
    TransportEvents,
)
from chat_gateway.components.core.context import ConnectionContext, sanitize_log_data
from chat_gateway.components.counter import ConnectionCounter
from chat_gateway.components.events.types import ChatMessage, CountUpdate, InboundChatMessage
from chat_gateway.components.connection.heartbeat import handle_heartbeat
from chat_gateway.components.endpoints.chat import ChatEndpoint

__all__ = [
    "WSCloseCode",
    "StoreKeys",
    "Channels",
    "TransportEvents",
    "ConnectionContext",
    "sanitize_log_data",
    "ConnectionCounter",
    "ChatMessage",
    "CountUpdate",
    "InboundChatMessage",
    "handle_heartbeat",
    "ChatEndpoint",
]
