"""
Shared connection counter.
"""

from chat_gateway.components.counter.connection_counter import ConnectionCounter

__all__ = ["ConnectionCounter"]
