"""
Event Value Objects for the Chat Gateway.

Outbound payloads built by the relay and the inbound wire schema
validated by the gateway before anything is published.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, StrictStr

from shared.utils.exceptions import ValidationError
from chat_gateway.components.core.constants import TransportEvents


# =============================================================================
# Outbound payloads
# =============================================================================


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """
    One delivery of a chat message to local sockets.

    Created fresh for every notification received on the message
    channel: republishing the same text yields a new ``id``.
    """

    message: str
    instance: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
            "instance": self.instance,
        }


@dataclass(frozen=True, slots=True)
class CountUpdate:
    """Connection count as received on the count channel, passed through verbatim."""

    count: str | int

    def to_payload(self) -> dict[str, Any]:
        return {"count": self.count}


def build_envelope(event: str, payload: Any) -> str:
    """Serialize an outbound transport frame."""
    return json.dumps({"event": event, "data": payload}, separators=(",", ":"))


# =============================================================================
# Inbound schema
# =============================================================================


class InboundChatMessage(BaseModel):
    """
    Body of a client ``new-message`` event: ``{message: string}``.

    Strict: numbers are not coerced to strings. Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    message: StrictStr


class ClientFrame(BaseModel):
    """Transport envelope sent by clients: ``{event, data}``."""

    model_config = ConfigDict(extra="ignore")

    event: StrictStr
    data: Any = None


def parse_client_frame(raw: str) -> tuple[str, Any]:
    """
    Decode a client frame into (event name, data).

    Raises:
        ValidationError: If the frame is not a JSON envelope.
    """
    try:
        frame = ClientFrame.model_validate_json(raw)
    except pydantic.ValidationError as e:
        raise ValidationError("malformed client frame", errors=e.error_count()) from e
    return frame.event, frame.data


def validate_new_message(data: Any) -> InboundChatMessage:
    """
    Validate the body of a ``new-message`` event.

    Raises:
        ValidationError: If ``data`` is not ``{message: string}``.
    """
    try:
        return InboundChatMessage.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "invalid new-message payload",
            event=TransportEvents.NEW_MESSAGE,
            errors=e.error_count(),
        ) from e
