"""
WebSocket endpoint handlers.
"""

from chat_gateway.components.endpoints.chat import ChatEndpoint

__all__ = ["ChatEndpoint"]
