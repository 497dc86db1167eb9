"""
Event handling: outbound value objects and inbound schema.
"""

from chat_gateway.components.events.types import (
    ChatMessage,
    CountUpdate,
    InboundChatMessage,
    build_envelope,
    parse_client_frame,
    validate_new_message,
)

__all__ = [
    "ChatMessage",
    "CountUpdate",
    "InboundChatMessage",
    "build_envelope",
    "parse_client_frame",
    "validate_new_message",
]
