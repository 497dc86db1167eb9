"""
Property-based tests with Hypothesis.

Counter arithmetic must hold for any interleaving of connects and
disconnects, and reconciliation must never leave a negative count.
"""

import asyncio
import json

from hypothesis import given, settings, strategies as st

from chat_gateway.components.core.constants import StoreKeys
from chat_gateway.components.counter import ConnectionCounter
from chat_gateway.components.events.types import build_envelope, validate_new_message
from chat_gateway.connection_manager import ConnectionManager
from chat_gateway.relay import Relay
from chat_gateway.shutdown import ShutdownCoordinator
from tests.conftest import FakeRedis, FakeRedisServer, FakeWebSocket


def build_manager(server: FakeRedisServer) -> ConnectionManager:
    counter = ConnectionCounter(FakeRedis(server))
    relay = Relay(FakeRedis(server), FakeRedis(server), "prop-instance")
    return ConnectionManager(counter, relay)


class TestCounterProperties:
    """Property-based tests for the shared counter."""

    @given(st.data())
    @settings(max_examples=50, deadline=None)
    def test_connects_minus_disconnects(self, data):
        """Property: after N connects and M <= N disconnects the count is N - M."""
        connects = data.draw(st.integers(min_value=0, max_value=30), label="connects")
        disconnects = data.draw(st.integers(min_value=0, max_value=connects), label="disconnects")

        async def scenario():
            server = FakeRedisServer()
            manager = build_manager(server)
            sockets = [FakeWebSocket() for _ in range(connects)]
            for ws in sockets:
                await manager.connect(ws)
            for ws in sockets[:disconnects]:
                await manager.disconnect(ws)
            return server, manager

        server, manager = asyncio.run(scenario())

        expected = connects - disconnects
        assert manager.local_connection_count() == expected
        if connects:
            assert int(server.data[StoreKeys.CONNECTION_COUNT]) == expected

    @given(
        start=st.integers(min_value=-5, max_value=1000),
        delta=st.integers(min_value=-2000, max_value=2000),
    )
    @settings(max_examples=100, deadline=None)
    def test_adjust_never_negative(self, start, delta):
        """Property: adjust(delta) yields max(0, start + delta)."""

        async def scenario():
            server = FakeRedisServer()
            server.data[StoreKeys.CONNECTION_COUNT] = str(start)
            return await ConnectionCounter(FakeRedis(server)).adjust(delta)

        assert asyncio.run(scenario()) == max(0, start + delta)

    @given(
        local=st.integers(min_value=0, max_value=20),
        others=st.integers(min_value=0, max_value=20),
    )
    @settings(max_examples=50, deadline=None)
    def test_drain_leaves_other_instances_contribution(self, local, others):
        """Property: draining one instance leaves exactly the others' count."""

        async def scenario():
            server = FakeRedisServer()
            manager = build_manager(server)
            for _ in range(local):
                await manager.connect(FakeWebSocket())
            current = int(server.data.get(StoreKeys.CONNECTION_COUNT, 0))
            server.data[StoreKeys.CONNECTION_COUNT] = str(current + others)

            coordinator = ShutdownCoordinator(
                manager, ConnectionCounter(FakeRedis(server)), grace_period=1.0
            )
            await coordinator.drain()
            return int(server.data.get(StoreKeys.CONNECTION_COUNT, 0))

        assert asyncio.run(scenario()) == others


class TestWireProperties:
    """Property-based tests for the wire format."""

    @given(text=st.text(max_size=200))
    @settings(max_examples=100)
    def test_any_string_message_is_accepted_verbatim(self, text):
        """Property: every string is a valid message body and is kept unchanged."""
        assert validate_new_message({"message": text}).message == text

    @given(
        event=st.sampled_from(["connection-count-updated", "new-message"]),
        payload=st.dictionaries(st.text(max_size=10), st.text(max_size=20), max_size=5),
    )
    @settings(max_examples=50)
    def test_envelope_has_event_and_data(self, event, payload):
        """Property: envelopes always carry exactly event and data."""
        decoded = json.loads(build_envelope(event, payload))
        assert decoded == {"event": event, "data": payload}
