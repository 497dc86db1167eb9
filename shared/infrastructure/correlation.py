"""
Connection correlation IDs.

Every WebSocket connection is tagged with an ID that is attached to
all log records emitted while its handlers run.
"""

import uuid
from contextvars import ContextVar, Token

# Context variable for connection ID (task-local)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the current connection ID."""
    return connection_id_var.get()


def bind_connection_id(connection_id: str | None = None) -> tuple[str, Token]:
    """
    Bind a connection ID to the current context.

    Args:
        connection_id: ID to bind. A new UUID is generated when omitted.

    Returns:
        Tuple of (connection_id, token). Pass the token to
        ``connection_id_var.reset`` when the connection ends.
    """
    if not connection_id:
        connection_id = str(uuid.uuid4())
    token = connection_id_var.set(connection_id)
    return connection_id, token


class CorrelationIdFilter:
    """
    Logging filter that adds connection_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
