"""
Per-connection context for logging.

Keeps user-supplied text out of log lines unescaped and carries the
metadata attached to every log entry of one WebSocket connection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# Control characters and Unicode direction overrides
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting (RTL override, etc.)
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM / Zero-width no-break space
)


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Truncates first so escaping never cuts a sequence in half, then
    strips control characters and escapes JSON-dangerous characters.

    Args:
        data: Raw user data.
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Replace backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')
    sanitized = sanitized.replace('\n', '\\n')
    sanitized = sanitized.replace('\r', '\\r')
    sanitized = sanitized.replace('\t', '\\t')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class ConnectionContext:
    """
    Metadata for one client connection.

    Usage:
        context = ConnectionContext(connection_id, client="1.2.3.4:5678")
        logger.info("Client connected", **context.to_log_dict())
    """

    connection_id: str
    client: str | None = None
    origin: str | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_log_dict(self) -> dict[str, Any]:
        """Context fields for structured logging, without empty values."""
        data: dict[str, Any] = {"connection_id": self.connection_id}
        if self.client:
            data["client"] = self.client
        if self.origin:
            data["origin"] = sanitize_log_data(self.origin)
        return data

    def lifetime_seconds(self) -> float:
        return round((datetime.now(timezone.utc) - self.connected_at).total_seconds(), 3)
