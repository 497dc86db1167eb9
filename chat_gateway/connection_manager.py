"""
WebSocket Connection Manager.

Owns the WebSocket connections held by this instance and the local tally
used by shutdown reconciliation. Translates transport events into counter
and relay calls, and relay deliveries into local broadcasts.
"""

from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING

from shared.config.logging import get_logger
from shared.utils.exceptions import StoreOperationError, ValidationError
from chat_gateway.components.core.constants import TransportEvents, WSCloseCode
from chat_gateway.components.core.context import sanitize_log_data
from chat_gateway.components.events.types import (
    build_envelope,
    parse_client_frame,
    validate_new_message,
)
from chat_gateway.core.connection import ConnectionBroadcaster

if TYPE_CHECKING:
    from fastapi import WebSocket
    from chat_gateway.components.counter import ConnectionCounter
    from chat_gateway.relay import Relay

logger = get_logger(__name__)


class ConnectionManager:
    """
    Manages the local WebSocket connections of one instance.

    Connection accounting favors availability: if the shared counter
    cannot be updated the client is still served and the failure is
    logged.

    The local tally is per-instance state handed to the shutdown
    coordinator by reference. It is not read from the store.
    """

    def __init__(
        self,
        counter: "ConnectionCounter",
        relay: "Relay",
        broadcaster: ConnectionBroadcaster | None = None,
    ) -> None:
        self._counter = counter
        self._relay = relay
        self._broadcaster = broadcaster or ConnectionBroadcaster()
        self._connections: set["WebSocket"] = set()
        self._local_count = 0
        self._draining = False

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def connections(self) -> frozenset["WebSocket"]:
        return frozenset(self._connections)

    def local_connection_count(self) -> int:
        """Number of connections this instance holds open, including any whose INCR is in flight."""
        return self._local_count

    def begin_draining(self) -> None:
        """
        Stop admitting connections and stop touching the shared counter
        on disconnect. Shutdown reconciliation removes this instance's
        whole contribution in one step instead.
        """
        if not self._draining:
            self._draining = True
            logger.info("Connection manager draining", local_connections=self._local_count)

    # =========================================================================
    # Transport lifecycle
    # =========================================================================

    async def connect(self, websocket: "WebSocket") -> None:
        """
        Accept a WebSocket and count it.

        Raises:
            ConnectionError: If the instance is shutting down.
        """
        if self._draining:
            await websocket.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down")
            raise ConnectionError("Server is shutting down")

        await websocket.accept()
        self._connections.add(websocket)
        # Counted before the INCR await so a drain starting meanwhile includes it
        self._local_count += 1

        try:
            count = await self._counter.increment()
            logger.info("Client connected", shared_count=count)
        except StoreOperationError as e:
            logger.error(
                "Failed to increment connection count",
                error=str(e),
                operation=e.operation,
            )
        except asyncio.CancelledError:
            # The endpoint never reaches disconnect() for an aborted connect
            self._connections.discard(websocket)
            self._local_count = max(0, self._local_count - 1)
            raise

    async def disconnect(self, websocket: "WebSocket") -> None:
        """Forget a WebSocket and uncount it. Unknown sockets are ignored."""
        if websocket not in self._connections:
            return
        self._connections.discard(websocket)

        if self._draining:
            logger.debug("Client disconnected during drain, counter left to reconciliation")
        else:
            try:
                count = await self._counter.decrement()
                logger.info("Client disconnected", shared_count=count)
            except StoreOperationError as e:
                logger.error(
                    "Failed to decrement connection count",
                    error=str(e),
                    operation=e.operation,
                )
        self._local_count = max(0, self._local_count - 1)

    async def handle_message(self, websocket: "WebSocket", raw: str) -> bool:
        """
        Validate an inbound frame and publish its text.

        Invalid frames are dropped silently: nothing is sent back to
        the client.

        Returns:
            True if the message was published.
        """
        try:
            event, data = parse_client_frame(raw)
            if event != TransportEvents.NEW_MESSAGE:
                raise ValidationError("unsupported event", event=sanitize_log_data(event))
            inbound = validate_new_message(data)
        except ValidationError as e:
            logger.debug("Dropped invalid client frame", reason=str(e), **e.context)
            return False

        try:
            await self._relay.publish_message(inbound.message)
        except StoreOperationError as e:
            logger.error("Failed to publish message", error=str(e))
            return False
        return True

    # =========================================================================
    # Local fan-out
    # =========================================================================

    async def broadcast_local(self, event: str, payload: dict[str, Any]) -> int:
        """
        Push one event to every locally connected socket.

        A failed send does not unregister the socket: its endpoint runs
        disconnect() when its receive loop ends, which keeps the counter
        paired with the earlier increment.

        Returns:
            Number of sockets the frame was delivered to.
        """
        if not self._connections:
            return 0

        message = build_envelope(event, payload)
        sent, failed = await self._broadcaster.send_to_all(list(self._connections), message)
        if failed:
            logger.warning("Broadcast send failures", event=event, failed=len(failed), sent=sent)
        return sent

    async def close_all(self, code: int = WSCloseCode.GOING_AWAY) -> int:
        """
        Close every local socket. Used once the instance is closing.

        Returns:
            Number of sockets closed.
        """
        closed = 0
        for ws in list(self._connections):
            try:
                await ws.close(code=code, reason="Server shutting down")
                closed += 1
            except (ConnectionError, RuntimeError, OSError) as e:
                logger.debug("Error closing socket", error=type(e).__name__)
        return closed
