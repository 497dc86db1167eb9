"""
uvicorn server with counter reconciliation on shutdown.

uvicorn turns SIGTERM/SIGINT into the end of its serve loop, then closes
the listener, closes open WebSockets and finally runs the lifespan exit.
Reconciliation has to run before the sockets are closed, so it hooks in
at the start of Server.shutdown().

A signal that ended the serve loop is treated as a graceful stop: it is
not re-raised once serving is over, so the process exits 0.
"""

from __future__ import annotations

import contextlib
import signal
import socket
import threading
from typing import Generator, TYPE_CHECKING

import uvicorn
from uvicorn.server import HANDLED_SIGNALS

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = get_logger(__name__)


class GracefulServer(uvicorn.Server):
    """
    uvicorn.Server that drains the app's ShutdownCoordinator before the
    standard shutdown sequence.

    The coordinator is looked up on ``app.state`` because the lifespan
    creates it after the server object exists.
    """

    def __init__(self, config: uvicorn.Config, app: "FastAPI") -> None:
        super().__init__(config)
        self._app = app
        self.stop_signals: list[int] = []

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        """
        Route SIGINT/SIGTERM to handle_exit while serving and restore the
        previous handlers afterwards, without re-delivering the signal.
        """
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        original_handlers = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)

        if self.stop_signals:
            logger.info(
                "Stopped by signal",
                signals=[signal.Signals(sig).name for sig in self.stop_signals],
            )

    def handle_exit(self, sig: int, frame) -> None:
        self.stop_signals.append(sig)
        super().handle_exit(sig, frame)

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        coordinator = getattr(self._app.state, "shutdown_coordinator", None)
        if coordinator is not None:
            await coordinator.drain()
        else:
            logger.debug("No shutdown coordinator registered, skipping drain")
        await super().shutdown(sockets=sockets)
