"""
Cluster-wide connection counter.

Wraps the atomic Redis operations on the shared connection-count key.
Every mutation publishes the new value on the count channel. The publish
reaches all instances, including the one that mutated the counter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis.exceptions

from shared.config.logging import get_logger
from shared.utils.exceptions import StoreOperationError
from chat_gateway.components.core.constants import Channels, StoreKeys
from chat_gateway.components.redis.lua_scripts import execute_clamped_adjust

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)


class ConnectionCounter:
    """
    Shared connection count backed by a single Redis integer key.

    The store is the source of truth: no value is cached in-process, and
    each method returns whatever the atomic command returned.

    Store failures are raised as StoreOperationError, never swallowed.
    """

    def __init__(
        self,
        redis_client: "aioredis.Redis",
        key: str = StoreKeys.CONNECTION_COUNT,
        channel: str = Channels.CONNECTION_COUNT_UPDATED,
    ) -> None:
        """
        Args:
            redis_client: Publisher client used for commands and PUBLISH.
            key: Counter key.
            channel: Channel notified after each mutation.
        """
        self._redis = redis_client
        self._key = key
        self._channel = channel

    @property
    def key(self) -> str:
        return self._key

    @property
    def channel(self) -> str:
        return self._channel

    async def increment(self) -> int:
        """INCR the shared key and publish the new count."""
        try:
            new_count = int(await self._redis.incr(self._key))
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("INCR", e, key=self._key) from e
        await self._publish(new_count)
        return new_count

    async def decrement(self) -> int:
        """
        DECR the shared key and publish the new count.

        Not clamped: concurrent connect/disconnect across instances may
        make the value transiently negative. The running total stays
        correct because every DECR pairs with an earlier INCR.
        """
        try:
            new_count = int(await self._redis.decr(self._key))
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("DECR", e, key=self._key) from e
        await self._publish(new_count)
        return new_count

    async def read(self) -> int:
        """Current shared count, 0 if the key was never set."""
        try:
            value = await self._redis.get(self._key)
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("GET", e, key=self._key) from e
        return int(value) if value is not None else 0

    async def initialize(self) -> int:
        """
        Read the count at startup, creating the key with 0 if absent.

        SET NX never overwrites a value written by another instance
        between our GET and SET.
        """
        try:
            value = await self._redis.get(self._key)
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("GET", e, key=self._key) from e
        if value is not None:
            return int(value)

        try:
            created = await self._redis.set(self._key, 0, nx=True)
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("SET", e, key=self._key) from e
        if created:
            logger.info("Connection count key created", key=self._key)
            return 0
        return await self.read()

    async def adjust(self, delta: int) -> int:
        """
        Atomically add ``delta`` (possibly negative), clamping at 0.

        Used by shutdown reconciliation to remove this instance's
        contribution in one step. Publishes the resulting count.
        """
        try:
            new_count = await execute_clamped_adjust(self._redis, self._key, delta)
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("EVAL", e, key=self._key, delta=delta) from e
        await self._publish(new_count)
        return new_count

    async def _publish(self, count: int) -> None:
        try:
            receivers = await self._redis.publish(self._channel, str(count))
        except redis.exceptions.RedisError as e:
            raise StoreOperationError("PUBLISH", e, channel=self._channel) from e
        logger.debug(
            "Connection count published",
            channel=self._channel,
            count=count,
            receivers=receivers,
        )
