"""
Pytest configuration and fixtures for chat gateway tests.

Provides an in-memory stand-in for the Redis commands the gateway uses
(GET, SET NX, INCR, DECR, SCRIPT LOAD and EVALSHA of the clamped-adjust
script, PUBLISH, SUBSCRIBE) with pub/sub fan-out shared by every client of
one FakeRedisServer, so several "instances" can be simulated in one test.
"""

import asyncio
import hashlib
import json

import pytest
import redis.exceptions
from starlette.websockets import WebSocketState

from shared.config.settings import Settings
from shared.infrastructure.redis_client import RedisClients
from chat_gateway.components.counter import ConnectionCounter
from chat_gateway.connection_manager import ConnectionManager
from chat_gateway.relay import Relay


# =============================================================================
# Fake Redis
# =============================================================================


class FakeRedisServer:
    """Shared keyspace and pub/sub bus."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.pubsubs: list["FakePubSub"] = []
        self.published: list[tuple[str, str]] = []
        self.scripts: dict[str, str] = {}

    def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        receivers = 0
        for pubsub in self.pubsubs:
            if channel in pubsub.channels:
                pubsub.queue.put_nowait({
                    "type": "message",
                    "pattern": None,
                    "channel": channel,
                    "data": message,
                })
                receivers += 1
        return receivers


class FakeRedis:
    """
    Async client bound to a FakeRedisServer.

    Commands listed in ``failing`` raise redis ConnectionError.
    """

    def __init__(self, server: FakeRedisServer, failing: set[str] | None = None):
        self.server = server
        self.failing = failing if failing is not None else set()
        self.closed = False

    def _check(self, command: str) -> None:
        if command in self.failing:
            raise redis.exceptions.ConnectionError(f"{command} unavailable")

    async def get(self, key):
        self._check("get")
        return self.server.data.get(key)

    async def set(self, key, value, nx=False):
        self._check("set")
        if nx and key in self.server.data:
            return None
        self.server.data[key] = str(value)
        return True

    async def incr(self, key):
        self._check("incr")
        value = int(self.server.data.get(key, 0)) + 1
        self.server.data[key] = str(value)
        return value

    async def decr(self, key):
        self._check("decr")
        value = int(self.server.data.get(key, 0)) - 1
        self.server.data[key] = str(value)
        return value

    async def script_load(self, script):
        self._check("eval")
        sha = hashlib.sha1(script.encode()).hexdigest()
        self.server.scripts[sha] = script
        return sha

    async def evalsha(self, sha, numkeys, *args):
        self._check("eval")
        if sha not in self.server.scripts:
            raise redis.exceptions.NoScriptError("No matching script")
        key, delta = args[0], int(args[1])
        value = max(0, int(self.server.data.get(key) or 0) + delta)
        self.server.data[key] = str(value)
        return value

    async def publish(self, channel, message):
        self._check("publish")
        return self.server.publish(channel, str(message))

    def pubsub(self):
        return FakePubSub(self)

    async def aclose(self):
        self.closed = True


class FakePubSub:
    def __init__(self, client: FakeRedis):
        self.client = client
        self.channels: set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        for channel in channels:
            self.client._check(f"subscribe:{channel}")
            self.channels.add(channel)
        if self not in self.client.server.pubsubs:
            self.client.server.pubsubs.append(self)

    async def unsubscribe(self, *channels):
        for channel in channels:
            self.channels.discard(channel)

    async def get_message(self, ignore_subscribe_messages=False, timeout=None):
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def aclose(self):
        self.closed = True
        if self in self.client.server.pubsubs:
            self.client.server.pubsubs.remove(self)


# =============================================================================
# Fake WebSocket
# =============================================================================


class FakeWebSocket:
    """Records frames sent by the gateway."""

    def __init__(self, fail_send: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.accepted = False
        self.close_code = None
        self.fail_send = fail_send
        self.sent: list[str] = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_send:
            raise RuntimeError("socket closed")
        self.sent.append(text)

    async def close(self, code=1000, reason=None):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def events(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]


async def wait_until(predicate, timeout: float = 1.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def redis_server():
    """A fresh shared store for each test."""
    return FakeRedisServer()


@pytest.fixture
def fake_redis(redis_server):
    return FakeRedis(redis_server)


@pytest.fixture
def counter(fake_redis):
    return ConnectionCounter(fake_redis)


@pytest.fixture
def relay(redis_server):
    return Relay(
        FakeRedis(redis_server),
        FakeRedis(redis_server),
        instance_id="instance-a",
        poll_timeout=0.05,
        error_backoff=0.01,
    )


@pytest.fixture
def manager(counter, relay):
    return ConnectionManager(counter, relay)


@pytest.fixture
def test_settings():
    return Settings(
        redis_url="redis://fake:6379/0",
        instance_id="test-instance",
        cors_origin="http://localhost:3000",
        shutdown_grace_period=0.5,
        redis_subscriber_poll_timeout=0.05,
    )


@pytest.fixture
def clients_factory(redis_server):
    """Builds fake publisher/subscriber clients on the shared store."""

    def factory(url: str) -> RedisClients:
        return RedisClients(
            publisher=FakeRedis(redis_server),
            subscriber=FakeRedis(redis_server),
        )

    return factory
