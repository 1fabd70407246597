"""
Connection handle contract.

The bridge never talks to a transport directly; it talks to handles. A handle
can write a text frame, close the connection, report its ready state, and
carries a metadata slot where the registry stashes the assigned client id.

StarletteConnection adapts a FastAPI/Starlette WebSocket to that contract.
Tests use their own in-memory handle (see tests/conftest.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from starlette.websockets import WebSocketState

if TYPE_CHECKING:
    from fastapi import WebSocket


class ReadyState(IntEnum):
    """Connection ready states, numbered like the browser WebSocket API."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


@dataclass(slots=True)
class ConnectionMetadata:
    """
    Metadata attached to a handle when it is registered.

    client_id and connected_at are set once by the registry. disconnect_notified
    is flipped by the lifecycle the first time on_client_disconnect fires for
    this connection, so a close that follows an error does not notify twice.
    """

    client_id: str
    connected_at: int  # ms since epoch
    disconnect_notified: bool = False


@runtime_checkable
class ConnectionHandle(Protocol):
    """What the bridge needs from one live connection."""

    metadata: ConnectionMetadata | None

    @property
    def ready_state(self) -> ReadyState: ...

    async def send(self, text: str) -> None:
        """Write one text frame. Raises on write error."""
        ...

    async def close(self, code: int, reason: str) -> None:
        """Close the connection with the given close code and reason."""
        ...


def get_client_id(handle: ConnectionHandle) -> str | None:
    """Client id attached to a handle, or None if it was never registered."""
    metadata = getattr(handle, "metadata", None)
    if metadata is None:
        return None
    return metadata.client_id


def is_handle_open(handle: ConnectionHandle) -> bool:
    """Ready-state check that never raises."""
    try:
        return handle.ready_state == ReadyState.OPEN
    except Exception:
        # A handle whose transport is gone may fail to report state
        return False


class StarletteConnection:
    """
    ConnectionHandle backed by a Starlette WebSocket.

    Starlette WebSockets have limited state visibility: the client and
    application sides are tracked separately and only CONNECTING, CONNECTED
    and DISCONNECTED are exposed. A connection is OPEN only when both sides
    are CONNECTED and we have not started closing it ourselves.
    """

    def __init__(self, websocket: "WebSocket") -> None:
        self.websocket = websocket
        self.metadata: ConnectionMetadata | None = None
        self._closing = False

    @property
    def ready_state(self) -> ReadyState:
        client_state = self.websocket.client_state
        application_state = self.websocket.application_state

        if (
            client_state == WebSocketState.CONNECTING
            or application_state == WebSocketState.CONNECTING
        ):
            return ReadyState.CONNECTING
        if (
            client_state == WebSocketState.CONNECTED
            and application_state == WebSocketState.CONNECTED
        ):
            return ReadyState.CLOSING if self._closing else ReadyState.OPEN
        return ReadyState.CLOSED

    async def send(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def close(self, code: int, reason: str) -> None:
        if self.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        self._closing = True
        await self.websocket.close(code=code, reason=reason)

    def __repr__(self) -> str:
        client_id = self.metadata.client_id if self.metadata else None
        return f"StarletteConnection(client_id={client_id!r}, state={self.ready_state.name})"
