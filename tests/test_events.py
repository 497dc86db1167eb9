"""
Tests for wire-level helpers: inbound schema, outbound payloads,
keepalive, origin policy and log sanitization.
"""

import json
import uuid
from datetime import timezone

import pytest
from starlette.websockets import WebSocketState

from shared.utils.exceptions import ValidationError
from chat_gateway.components.connection.heartbeat import handle_heartbeat, is_heartbeat
from chat_gateway.components.core.constants import MSG_PONG_JSON, validate_websocket_origin
from chat_gateway.components.core.context import ConnectionContext, sanitize_log_data
from chat_gateway.components.events.types import (
    ChatMessage,
    CountUpdate,
    build_envelope,
    parse_client_frame,
    validate_new_message,
)
from chat_gateway.core.connection import ConnectionBroadcaster
from tests.conftest import FakeWebSocket


class TestInboundSchema:
    """{message: string} validation."""

    def test_valid_message(self):
        assert validate_new_message({"message": "hello"}).message == "hello"

    def test_empty_string_is_valid(self):
        assert validate_new_message({"message": ""}).message == ""

    @pytest.mark.parametrize(
        "data",
        [{"message": 123}, {"message": True}, {"message": None}, {}, None, "hello", ["hello"]],
    )
    def test_invalid_bodies(self, data):
        with pytest.raises(ValidationError):
            validate_new_message(data)

    def test_parse_client_frame(self):
        event, data = parse_client_frame('{"event":"new-message","data":{"message":"hi"}}')

        assert event == "new-message"
        assert data == {"message": "hi"}

    def test_parse_client_frame_without_data(self):
        assert parse_client_frame('{"event":"new-message"}') == ("new-message", None)

    @pytest.mark.parametrize("raw", ["", "not json", "[]", '{"event": 1}', '{"data": {}}'])
    def test_parse_rejects_malformed_frames(self, raw):
        with pytest.raises(ValidationError):
            parse_client_frame(raw)


class TestOutboundPayloads:
    """ChatMessage, CountUpdate and the envelope."""

    def test_chat_message_payload(self):
        msg = ChatMessage(message="hello", instance="host:3001")

        payload = msg.to_payload()

        assert payload["message"] == "hello"
        assert payload["instance"] == "host:3001"
        assert uuid.UUID(payload["id"]).version == 4
        assert msg.created_at.tzinfo is timezone.utc
        assert payload["createdAt"] == msg.created_at.isoformat()

    def test_chat_messages_get_distinct_ids(self):
        assert ChatMessage("a", "i").id != ChatMessage("a", "i").id

    def test_count_update_is_passed_through(self):
        assert CountUpdate("7").to_payload() == {"count": "7"}

    def test_envelope_is_compact_json(self):
        envelope = build_envelope("connection-count-updated", {"count": "3"})

        assert envelope == '{"event":"connection-count-updated","data":{"count":"3"}}'


class TestHeartbeat:
    """Keepalive frames."""

    @pytest.mark.parametrize("data", ["ping", '{"type":"ping"}'])
    def test_ping_formats(self, data):
        assert is_heartbeat(data)

    def test_chat_frame_is_not_heartbeat(self):
        assert not is_heartbeat('{"event":"new-message","data":{"message":"ping"}}')

    @pytest.mark.asyncio
    async def test_pong_is_sent(self):
        ws = FakeWebSocket()

        assert await handle_heartbeat(ws, "ping") is True
        assert ws.sent == [MSG_PONG_JSON]

    @pytest.mark.asyncio
    async def test_pong_failure_is_tolerated(self):
        ws = FakeWebSocket(fail_send=True)

        assert await handle_heartbeat(ws, "ping") is True

    @pytest.mark.asyncio
    async def test_other_frames_are_not_handled(self):
        ws = FakeWebSocket()

        assert await handle_heartbeat(ws, "hello") is False
        assert ws.sent == []


class TestOriginPolicy:
    """WebSocket Origin header check."""

    def test_matching_origin(self):
        assert validate_websocket_origin("http://localhost:3000", "http://localhost:3000")

    def test_trailing_slash_is_ignored(self):
        assert validate_websocket_origin("http://localhost:3000/", "http://localhost:3000")

    def test_other_origin_rejected(self):
        assert not validate_websocket_origin("http://evil.example", "http://localhost:3000")

    def test_missing_origin_allowed(self):
        assert validate_websocket_origin(None, "http://localhost:3000")

    def test_wildcard_allows_any(self):
        assert validate_websocket_origin("http://anything.example", "*")


class TestBroadcaster:
    """Batched fan-out."""

    @pytest.mark.asyncio
    async def test_batches_cover_every_socket(self):
        broadcaster = ConnectionBroadcaster(batch_size=2)
        sockets = [FakeWebSocket() for _ in range(5)]

        sent, failed = await broadcaster.send_to_all(sockets, "frame")

        assert sent == 5
        assert failed == []
        assert all(ws.sent == ["frame"] for ws in sockets)

    @pytest.mark.asyncio
    async def test_failures_are_reported_not_raised(self):
        broadcaster = ConnectionBroadcaster()
        good, bad = FakeWebSocket(), FakeWebSocket(fail_send=True)

        sent, failed = await broadcaster.send_to_all([good, bad], "frame")

        assert sent == 1
        assert failed == [bad]
        assert broadcaster.total_sent == 1
        assert broadcaster.total_failed == 1

    @pytest.mark.asyncio
    async def test_closed_sockets_are_skipped(self):
        broadcaster = ConnectionBroadcaster()
        closed = FakeWebSocket()
        closed.application_state = WebSocketState.DISCONNECTED

        sent, failed = await broadcaster.send_to_all([closed], "frame")

        assert (sent, failed) == (0, [])
        assert closed.sent == []


class TestLogSanitization:
    """User text in log lines."""

    def test_control_characters_removed(self):
        assert sanitize_log_data("a\x00b\x1bc\u202ed") == "abcd"

    def test_quotes_and_backslashes_escaped(self):
        assert sanitize_log_data('say "hi" \\o/') == 'say \\"hi\\" \\\\o/'

    def test_long_values_truncated(self):
        result = sanitize_log_data("x" * 500, max_length=10)

        assert result == "x" * 10 + "..."

    def test_sanitized_value_is_json_safe(self):
        json.dumps({"v": sanitize_log_data('\u200b"\n\t')})

    def test_connection_context_log_dict(self):
        context = ConnectionContext("abc", client="1.2.3.4:5678", origin='http://x"y')

        assert context.to_log_dict() == {
            "connection_id": "abc",
            "client": "1.2.3.4:5678",
            "origin": 'http://x\\"y',
        }
        assert context.lifetime_seconds() >= 0
