"""
Connection Broadcaster.

Sends one serialized frame to many local WebSocket connections.
Fire-and-forget: a slow or dead socket never blocks the others and
no delivery confirmation is collected.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets expose CONNECTING, CONNECTED and DISCONNECTED.
    A socket may still look connected briefly after the peer went away;
    the send then fails and is reported as a failure.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class ConnectionBroadcaster:
    """
    Fan-out of a text frame to a set of sockets.

    Sends run concurrently in batches of ``batch_size`` so a large local
    population does not create an unbounded number of pending sends.
    """

    def __init__(self, batch_size: int = 50) -> None:
        self._batch_size = max(1, batch_size)
        self._total_sent = 0
        self._total_failed = 0

    @property
    def total_sent(self) -> int:
        return self._total_sent

    @property
    def total_failed(self) -> int:
        return self._total_failed

    async def send_to_all(
        self,
        connections: Iterable["WebSocket"],
        message: str,
    ) -> tuple[int, list["WebSocket"]]:
        """
        Send ``message`` to every connected socket in ``connections``.

        Sockets that are no longer connected are skipped silently.

        Returns:
            Tuple of (number of successful sends, sockets whose send failed).
        """
        targets = [ws for ws in connections if is_ws_connected(ws)]
        sent = 0
        failed: list["WebSocket"] = []

        for start in range(0, len(targets), self._batch_size):
            batch = targets[start:start + self._batch_size]
            results = await asyncio.gather(
                *(ws.send_text(message) for ws in batch),
                return_exceptions=True,
            )
            for ws, result in zip(batch, results):
                if isinstance(result, BaseException):
                    failed.append(ws)
                    logger.debug(
                        "Send to socket failed",
                        error=type(result).__name__,
                    )
                else:
                    sent += 1

        self._total_sent += sent
        self._total_failed += len(failed)
        return sent, failed
