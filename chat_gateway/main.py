"""
Chat Gateway main application.

Wires the components of one instance around two Redis clients:

    ConnectionCounter --+
                        +--> ConnectionManager <--> ChatEndpoint (per socket)
    Relay --------------+
    ShutdownCoordinator (drain on signal, close on lifespan exit)

Run with ``chat-gateway`` or ``python -m chat_gateway.main``.
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Callable

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import Settings, settings as default_settings
from shared.config.logging import setup_logging, chat_gateway_logger as logger
from shared.infrastructure.redis_client import RedisClients, create_redis_clients
from shared.utils.exceptions import ConfigurationError
from chat_gateway import __version__
from chat_gateway.components.core.constants import ALLOWED_HEADERS, ALLOWED_METHODS
from chat_gateway.components.counter import ConnectionCounter
from chat_gateway.components.endpoints import ChatEndpoint
from chat_gateway.connection_manager import ConnectionManager
from chat_gateway.relay import Relay
from chat_gateway.server import GracefulServer
from chat_gateway.shutdown import ShutdownCoordinator


def create_app(
    app_settings: Settings | None = None,
    clients_factory: Callable[[str], RedisClients] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application for one instance.

    Args:
        app_settings: Settings to use (defaults to the environment).
        clients_factory: Builds the Redis clients from the URL. Defaults to
            real redis.asyncio clients.
    """
    app_settings = app_settings or default_settings
    clients_factory = clients_factory or create_redis_clients
    instance_id = app_settings.resolved_instance_id

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Startup: subscribe channels, read the shared count.
        Shutdown: hand over to the ShutdownCoordinator.
        """
        setup_logging()
        redis_url = app_settings.require_redis_url()
        logger.info(
            "Starting chat gateway",
            instance=instance_id,
            port=app_settings.port,
            env=app_settings.environment,
        )

        clients = clients_factory(redis_url)
        counter = ConnectionCounter(clients.publisher)
        relay = Relay(
            clients.publisher,
            clients.subscriber,
            instance_id,
            poll_timeout=app_settings.redis_subscriber_poll_timeout,
            error_backoff=app_settings.redis_subscriber_error_backoff,
        )
        manager = ConnectionManager(counter, relay)
        coordinator = ShutdownCoordinator(
            manager,
            counter,
            relay=relay,
            clients=clients,
            grace_period=app_settings.shutdown_grace_period,
        )

        app.state.connection_manager = manager
        app.state.shutdown_coordinator = coordinator

        relay.subscribe(manager.broadcast_local)
        try:
            await relay.start()
            current_count = await counter.initialize()
        except Exception:
            await relay.stop()
            await clients.close()
            raise
        logger.info(
            "Shared connection count loaded",
            current_count=current_count,
            channels=relay.subscribed_channels,
        )

        yield

        await coordinator.close()

    app = FastAPI(
        title="Chat Relay Gateway",
        description="Real-time chat fan-out across stateless instances",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.instance_id = instance_id

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app_settings.cors_origin],
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )

    @app.get("/health-check")
    def health_check():
        """Liveness check. Never touches Redis."""
        return {
            "status": "ok",
            "instance": instance_id,
        }

    @app.websocket("/ws")
    async def chat_websocket(websocket: WebSocket):
        """WebSocket endpoint for chat clients."""
        endpoint = ChatEndpoint(
            websocket,
            websocket.app.state.connection_manager,
            max_message_size=app_settings.ws_max_message_size,
            allowed_origin=app_settings.cors_origin,
        )
        await endpoint.run()

    return app


app = create_app()


def run() -> None:
    """
    Process entry point.

    Exit codes: 0 after graceful shutdown, 1 on missing configuration or
    failed startup.
    """
    setup_logging()
    try:
        default_settings.require_redis_url()
    except ConfigurationError as e:
        logger.critical("Configuration error", error=str(e))
        sys.exit(1)

    config = uvicorn.Config(
        app,
        host=default_settings.host,
        port=default_settings.port,
        log_config=None,
        lifespan="on",
    )
    server = GracefulServer(config, app)
    try:
        server.run()
    except SystemExit as e:
        # uvicorn exits with its own code when the lifespan startup fails
        if e.code not in (None, 0):
            logger.critical("Server failed to start", uvicorn_exit_code=e.code)
            sys.exit(1)
        raise
    except Exception as e:
        logger.critical("Unrecovered startup error", error=str(e), exc_info=True)
        sys.exit(1)

    if not server.started:
        logger.critical("Server failed to start")
        sys.exit(1)

    logger.info("See you later")


if __name__ == "__main__":
    run()
