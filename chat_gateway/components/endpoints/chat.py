"""
Chat WebSocket endpoint.

Runs one client connection from accept to disconnect:
1. Register with the ConnectionManager (counts the connection)
2. Message loop (size check, keepalive, chat frames)
3. Unregister on disconnect (uncounts the connection)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.correlation import bind_connection_id, connection_id_var
from chat_gateway.components.core.constants import WSCloseCode, validate_websocket_origin
from chat_gateway.components.core.context import ConnectionContext
from chat_gateway.components.connection.heartbeat import handle_heartbeat

if TYPE_CHECKING:
    from chat_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class ChatEndpoint:
    """
    Handler for one chat WebSocket.

    No receive timeout: an idle client stays connected until it or the
    server closes the socket.

    Usage:
        endpoint = ChatEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        max_message_size: int | None = None,
        allowed_origin: str | None = None,
    ):
        self.websocket = websocket
        self.manager = manager
        self.max_message_size = (
            max_message_size if max_message_size is not None else settings.ws_max_message_size
        )
        self.allowed_origin = allowed_origin if allowed_origin is not None else settings.cors_origin
        self.context: ConnectionContext | None = None

    async def run(self) -> None:
        connection_id, token = bind_connection_id()
        client = self.websocket.client
        self.context = ConnectionContext(
            connection_id=connection_id,
            client=f"{client.host}:{client.port}" if client else None,
            origin=self.websocket.headers.get("origin"),
        )
        try:
            if not validate_websocket_origin(self.context.origin, self.allowed_origin):
                logger.warning("Origin not allowed", **self.context.to_log_dict())
                await self.websocket.close(
                    code=WSCloseCode.POLICY_VIOLATION,
                    reason="Origin not allowed",
                )
                return

            try:
                await self.manager.connect(self.websocket)
            except ConnectionError as e:
                logger.info("Connection rejected", reason=str(e), **self.context.to_log_dict())
                return

            logger.debug("WebSocket session started", **self.context.to_log_dict())
            try:
                await self._message_loop()
            finally:
                await self.manager.disconnect(self.websocket)
                logger.debug(
                    "WebSocket session ended",
                    lifetime_seconds=self.context.lifetime_seconds(),
                )
        finally:
            connection_id_var.reset(token)

    async def _message_loop(self) -> None:
        """Receive frames until the client disconnects or breaks a limit."""
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

            data = message.get("text")
            if data is None:
                # Binary frames are not part of the protocol
                continue

            if not await self._validate_message_size(data):
                return

            if await handle_heartbeat(self.websocket, data):
                continue

            await self.manager.handle_message(self.websocket, data)

    async def _validate_message_size(self, data: str) -> bool:
        """
        Returns:
            True if within limit, False if too large (connection closed).
        """
        if len(data) <= self.max_message_size:
            return True
        logger.warning(
            "Message size exceeded limit",
            size=len(data),
            max_size=self.max_message_size,
        )
        await self.websocket.close(
            code=WSCloseCode.MESSAGE_TOO_BIG,
            reason="Message too large",
        )
        return False
