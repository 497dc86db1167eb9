"""
Graceful shutdown coordinator.

On process termination the per-socket disconnect handlers cannot be
relied on to decrement the shared counter, so this instance removes its
whole contribution in one atomic adjustment before the sockets go away.

States: RUNNING -> DRAINING -> CLOSED. Transitions are one-way.

Usage:
    coordinator = ShutdownCoordinator(manager, counter, relay, clients)
    await coordinator.drain()   # before the listener and sockets close
    await coordinator.close()   # after, releases Redis handles
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import ShutdownTimeoutError, StoreOperationError

if TYPE_CHECKING:
    from shared.infrastructure.redis_client import RedisClients
    from chat_gateway.components.counter import ConnectionCounter
    from chat_gateway.connection_manager import ConnectionManager
    from chat_gateway.relay import Relay

logger = get_logger(__name__)


class ShutdownState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class ShutdownCoordinator:
    """Reconciles the shared counter and releases resources on shutdown."""

    def __init__(
        self,
        manager: "ConnectionManager",
        counter: "ConnectionCounter",
        relay: "Relay | None" = None,
        clients: "RedisClients | None" = None,
        grace_period: float | None = None,
    ) -> None:
        self._manager = manager
        self._counter = counter
        self._relay = relay
        self._clients = clients
        self._grace_period = (
            grace_period if grace_period is not None else settings.shutdown_grace_period
        )
        self._state = ShutdownState.RUNNING
        self._reconciled_delta = 0

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def reconciled_delta(self) -> int:
        """Delta applied to the shared counter, 0 if none was applied."""
        return self._reconciled_delta

    async def drain(self) -> bool:
        """
        Enter DRAINING and remove this instance's connections from the
        shared count.

        Bounded by the grace period. A timeout or store error is logged
        and shutdown continues; the shared count may then stay overstated.

        Returns:
            True if reconciliation completed (or nothing was owed).
        """
        if self._state is not ShutdownState.RUNNING:
            return True
        self._state = ShutdownState.DRAINING
        self._manager.begin_draining()

        local = self._manager.local_connection_count()
        logger.info("Shutting down", local_connections=local)
        if local <= 0:
            return True

        logger.info("Removing local connections from the shared count", count=local)
        try:
            new_count = await asyncio.wait_for(
                self._counter.adjust(-local),
                timeout=self._grace_period,
            )
        except asyncio.TimeoutError:
            error = ShutdownTimeoutError(self._grace_period, -local)
            logger.error(str(error), **error.context)
            return False
        except StoreOperationError as e:
            if e.operation != "PUBLISH":
                logger.error("Counter reconciliation failed", error=str(e), delta=-local)
                return False
            # The adjustment was stored, only its notification was lost
            logger.warning("Shared count reconciled without notification", error=str(e), delta=-local)
            self._reconciled_delta = -local
            return True

        self._reconciled_delta = -local
        logger.info("Shared count reconciled", shared_count=new_count, delta=-local)
        return True

    async def close(self) -> None:
        """
        Enter CLOSED: stop the relay, close remaining sockets and release
        the Redis clients. Drains first if drain() was never called.
        """
        if self._state is ShutdownState.CLOSED:
            return
        if self._state is ShutdownState.RUNNING:
            await self.drain()
        self._state = ShutdownState.CLOSED

        if self._relay is not None:
            await self._relay.stop()

        closed = await self._manager.close_all()
        if closed:
            logger.info("Closed remaining sockets", count=closed)

        if self._clients is not None:
            await self._clients.close()

        logger.info("Shutdown complete")
