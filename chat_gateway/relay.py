"""
Redis pub/sub relay for the chat gateway.

Bridges local events to the cluster-wide channels and cluster-wide
notifications back to local broadcasts:

- publish_message(): PUBLISH a client's text on the message channel
- subscribe(): register the local broadcast callback
- start(): SUBSCRIBE both channels and run the listener task
- dispatch(): route one notification through the channel dispatch table

Every instance, including the publisher, receives every notification, so
local delivery always goes through the store. No replay: a notification
published before start() is never seen.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TYPE_CHECKING

import redis.exceptions

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import StoreOperationError, SubscriptionSetupError
from chat_gateway.components.core.constants import Channels, TransportEvents
from chat_gateway.components.events.types import ChatMessage, CountUpdate

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)

# Receives (transport event name, payload dict)
BroadcastCallback = Callable[[str, dict[str, Any]], Awaitable[None]]
NotificationHandler = Callable[[str], Awaitable[None]]


class Relay:
    """
    Publishes chat messages and turns channel notifications into
    local broadcasts.

    Owns no state beyond channel names, the dispatch table and its
    pubsub handle. The Redis clients are owned by the caller.
    """

    def __init__(
        self,
        publisher: "aioredis.Redis",
        subscriber: "aioredis.Redis",
        instance_id: str,
        poll_timeout: float | None = None,
        error_backoff: float | None = None,
    ) -> None:
        """
        Args:
            publisher: Client used for PUBLISH.
            subscriber: Client dedicated to pub/sub.
            instance_id: Identity stamped on every delivered chat message.
            poll_timeout: Max wait per get_message call.
            error_backoff: Pause after a pubsub connection error.
        """
        self._publisher = publisher
        self._subscriber = subscriber
        self._instance_id = instance_id
        self._poll_timeout = (
            poll_timeout if poll_timeout is not None else settings.redis_subscriber_poll_timeout
        )
        self._error_backoff = (
            error_backoff if error_backoff is not None else settings.redis_subscriber_error_backoff
        )

        self._dispatch_table: dict[str, NotificationHandler] = {
            Channels.CONNECTION_COUNT_UPDATED: self._on_connection_count_updated,
            Channels.NEW_MESSAGE: self._on_new_message,
        }
        self._broadcast: BroadcastCallback | None = None
        self._pubsub: Any = None
        self._listener_task: asyncio.Task | None = None
        self._subscribed: list[str] = []
        self._setup_errors: list[SubscriptionSetupError] = []

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def subscribed_channels(self) -> list[str]:
        return list(self._subscribed)

    @property
    def setup_errors(self) -> list[SubscriptionSetupError]:
        return list(self._setup_errors)

    @property
    def is_listening(self) -> bool:
        return self._listener_task is not None and not self._listener_task.done()

    # =========================================================================
    # Outbound
    # =========================================================================

    async def publish_message(self, text: str) -> int:
        """
        Publish ``text`` verbatim on the message channel.

        No validation here: the gateway validates before calling.

        Returns:
            Number of subscribers that received the message.

        Raises:
            StoreOperationError: If PUBLISH fails.
        """
        try:
            return await self._publisher.publish(Channels.NEW_MESSAGE, text)
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("PUBLISH", e, channel=Channels.NEW_MESSAGE) from e

    # =========================================================================
    # Inbound
    # =========================================================================

    def subscribe(self, broadcast: BroadcastCallback) -> None:
        """Register the callback that pushes events to local sockets."""
        self._broadcast = broadcast

    async def start(self) -> list[str]:
        """
        Subscribe to every channel and start the listener task.

        Each channel is subscribed separately. A failure is logged and the
        instance keeps running without that channel's notifications.

        Returns:
            Channels successfully subscribed.
        """
        if self._pubsub is None:
            self._pubsub = self._subscriber.pubsub()

        for channel in Channels.ALL:
            if channel in self._subscribed:
                continue
            try:
                await self._pubsub.subscribe(channel)
            except redis.exceptions.RedisError as e:
                error = SubscriptionSetupError(channel, e)
                self._setup_errors.append(error)
                logger.error(
                    "Error subscribing to channel, running without it",
                    channel=channel,
                    error=str(e),
                )
                continue
            self._subscribed.append(channel)
            logger.info("Subscribed to channel", channel=channel)

        if self._subscribed and self._listener_task is None:
            self._listener_task = asyncio.create_task(self._listen(), name="relay_listener")

        return list(self._subscribed)

    async def dispatch(self, channel: str, payload: str) -> bool:
        """
        Route one notification through the dispatch table.

        Returns:
            True if the channel is known and was handled, False if ignored.
        """
        handler = self._dispatch_table.get(channel)
        if handler is None:
            return False
        await handler(payload)
        return True

    async def _on_connection_count_updated(self, payload: str) -> None:
        update = CountUpdate(count=payload)
        await self._deliver(TransportEvents.CONNECTION_COUNT_UPDATED, update.to_payload())

    async def _on_new_message(self, payload: str) -> None:
        message = ChatMessage(message=payload, instance=self._instance_id)
        await self._deliver(TransportEvents.NEW_MESSAGE, message.to_payload())

    async def _deliver(self, event: str, data: dict[str, Any]) -> None:
        if self._broadcast is None:
            logger.debug("Notification received with no broadcast callback", event=event)
            return
        await self._broadcast(event, data)

    async def _listen(self) -> None:
        """
        Listener loop: read notifications and dispatch them in the order
        Redis delivers them.

        Runs until cancelled. Connection errors are logged and polling
        continues; redis-py re-establishes the subscription on its own.
        """
        logger.info("Relay listener started", channels=self._subscribed)
        while True:
            try:
                msg = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout,
                )
            except redis.exceptions.TimeoutError:
                # Normal for pubsub - continue listening
                continue
            except redis.exceptions.ConnectionError as e:
                logger.warning(
                    "Redis pubsub connection error",
                    error=str(e),
                    backoff_seconds=self._error_backoff,
                )
                await asyncio.sleep(self._error_backoff)
                continue

            if msg is None:
                await asyncio.sleep(0.01)
                continue

            if msg.get("type") != "message":
                continue

            try:
                await self.dispatch(msg["channel"], msg["data"])
            except Exception as e:
                logger.error(
                    "Error dispatching notification",
                    channel=msg.get("channel"),
                    error=str(e),
                    exc_info=True,
                )

    async def stop(self) -> None:
        """Stop the listener and release the pubsub connection."""
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        if self._pubsub is None:
            return

        try:
            if self._subscribed:
                await self._pubsub.unsubscribe(*self._subscribed)
        except Exception as e:
            logger.warning("Error during pubsub unsubscribe", error=str(e))
        try:
            await self._pubsub.aclose()
        except Exception as e:
            logger.debug("Error closing pubsub", error=str(e))

        self._pubsub = None
        self._subscribed = []
        logger.info("Relay stopped")
