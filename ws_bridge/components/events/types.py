"""
Envelope Value Objects for the WebSocket Bridge.

Wire format, both directions:

    { "type": str, "data": any, "timestamp": int, "clientId"?: str }

- OutboundEnvelope: what the bridge writes. clientId only on unicast.
- InboundEnvelope: what a client frame must parse into (type + data).
- ClientMessage: what on_message receives. client_id and timestamp are set by
  the bridge, never taken from the wire.
- ServerStatus: read-only status snapshot.

data is an opaque JSON value throughout; the protocol never inspects it.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_core import PydanticSerializationError

from ws_bridge.components.core.constants import (
    INVALID_MESSAGE_FORMAT,
    WELCOME_MESSAGE,
    MessageType,
)
from ws_bridge.components.core.exceptions import EnvelopeEncodingError

__all__ = [
    "now_ms",
    "OutboundEnvelope",
    "InboundEnvelope",
    "ClientMessage",
    "ServerStatus",
    "ValidationError",
]


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


class OutboundEnvelope(BaseModel):
    """
    Immutable outbound envelope.

    timestamp is the generation time of the envelope itself, never inherited
    from whatever triggered the send.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    data: Any = None
    timestamp: int = Field(default_factory=now_ms)
    client_id: str | None = Field(default=None, alias="clientId")

    def to_json(self) -> str:
        """
        Serialize to the wire format.

        Raises:
            EnvelopeEncodingError: If data is not JSON-serializable.
        """
        exclude = {"client_id"} if self.client_id is None else None
        try:
            return self.model_dump_json(by_alias=True, exclude=exclude)
        except PydanticSerializationError as e:
            raise EnvelopeEncodingError(self.type, self.data, str(e)) from e

    @classmethod
    def build(cls, message_type: Any, data: Any, client_id: str | None = None) -> "OutboundEnvelope":
        """
        Envelope for an application send.

        Raises:
            EnvelopeEncodingError: If message_type is not a string.
        """
        try:
            return cls(type=message_type, data=data, client_id=client_id)
        except ValidationError as e:
            reason = e.errors()[0]["msg"] if e.error_count() else str(e)
            raise EnvelopeEncodingError(message_type, data, f"invalid type: {reason}") from e

    @classmethod
    def connected(cls, client_id: str) -> "OutboundEnvelope":
        """Welcome envelope sent right after a connection is registered."""
        timestamp = now_ms()
        return cls(
            type=MessageType.CONNECTED,
            data={
                "clientId": client_id,
                "message": WELCOME_MESSAGE,
                "timestamp": timestamp,
            },
            timestamp=timestamp,
        )

    @classmethod
    def pong(cls) -> "OutboundEnvelope":
        """Heartbeat reply. data.timestamp is the reply time."""
        timestamp = now_ms()
        return cls(type=MessageType.PONG, data={"timestamp": timestamp}, timestamp=timestamp)

    @classmethod
    def error(cls, message: str = INVALID_MESSAGE_FORMAT) -> "OutboundEnvelope":
        """Error reply for a frame that could not be processed."""
        timestamp = now_ms()
        return cls(
            type=MessageType.ERROR,
            data={"message": message, "timestamp": timestamp},
            timestamp=timestamp,
        )


class InboundEnvelope(BaseModel):
    """
    A parsed client frame.

    Only type and data are read. Anything else on the wire, including a
    client-claimed clientId or timestamp, is ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    data: Any = None

    @classmethod
    def parse_frame(cls, raw: str | bytes) -> "InboundEnvelope":
        """
        Parse a raw text (or UTF-8 bytes) frame.

        Decoded with json.loads before validation, so any document the json
        module accepts (lone surrogate escapes included) reaches the handlers.

        Raises:
            ValueError: If the frame is not UTF-8 or not JSON
                (UnicodeDecodeError / json.JSONDecodeError), or is not an
                object with a string "type" field (ValidationError).
            RecursionError: If the document nests deeper than json can decode.
        """
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8")
        return cls.model_validate(json.loads(raw))


@dataclass(frozen=True, slots=True)
class ClientMessage:
    """
    Immutable message handed to on_message.

    Attributes:
        type: Application type tag from the frame.
        data: Payload from the frame (any JSON value, None if absent).
        client_id: Id of the connection the frame arrived on.
        timestamp: Receipt time in ms since epoch.
    """

    type: str
    data: Any
    client_id: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        """Wire-style dict (camelCase clientId)."""
        return {
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
            "clientId": self.client_id,
        }


@dataclass(frozen=True, slots=True)
class ServerStatus:
    """Read-only bridge status snapshot."""

    is_running: bool
    connected_clients: int
    port: int
    host: str
    path: str
    uptime_seconds: float = 0.0
    messages_sent: int = 0
    send_failures: int = 0
    broadcasts: int = 0
    malformed_frames: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "connectedClients": self.connected_clients,
            "port": self.port,
            "host": self.host,
            "path": self.path,
            "uptimeSeconds": self.uptime_seconds,
            "messagesSent": self.messages_sent,
            "sendFailures": self.send_failures,
            "broadcasts": self.broadcasts,
            "malformedFrames": self.malformed_frames,
        }
