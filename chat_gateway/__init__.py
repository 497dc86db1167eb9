"""
Chat relay WebSocket gateway.

Stateless instances share a connection count and fan messages out to
each other through Redis pub/sub.
"""

__version__ = "0.1.0"
