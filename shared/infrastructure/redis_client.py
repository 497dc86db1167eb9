"""
Redis client construction.

Each instance owns two explicitly constructed clients: a publisher for
commands and PUBLISH, and a subscriber dedicated to pub/sub. Both are
created at startup, handed to the components that use them, and closed
by the shutdown coordinator. No module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

import redis.asyncio as redis

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)


def create_redis_client(url: str, name: str) -> redis.Redis:
    """
    Create an async Redis client for the given URL.

    Connection is lazy: no network I/O happens until the first command.

    Args:
        url: Redis connection URL (redis:// or rediss://).
        name: Role name used in logs ("publisher" or "subscriber").
    """
    client = redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )
    logger.debug("Redis client created", role=name)
    return client


@dataclass
class RedisClients:
    """Publisher and subscriber handles owned by one instance."""

    publisher: redis.Redis
    subscriber: redis.Redis
    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """
        Close both clients. Safe to call more than once.

        Errors are logged, never raised: this runs during shutdown.
        """
        if self._closed:
            return
        self._closed = True

        for role, client in (("publisher", self.publisher), ("subscriber", self.subscriber)):
            try:
                await client.aclose()
                logger.info("Redis client closed", role=role)
            except Exception as e:
                logger.warning("Error closing Redis client", role=role, error=str(e))


def create_redis_clients(url: str) -> RedisClients:
    """Create the publisher/subscriber pair for one instance."""
    return RedisClients(
        publisher=create_redis_client(url, "publisher"),
        subscriber=create_redis_client(url, "subscriber"),
    )
