"""
Connection Lifecycle Management.

Handles the opened / closed / errored events delivered by the transport.
Extracted from the bridge so registration and disconnect notification live
in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from shared.config.logging import client_id_var, get_logger
from ws_bridge.components.connection.handle import get_client_id
from ws_bridge.components.core.constants import (
    SHUTDOWN_REASON,
    UNKNOWN_CLIENT_ID,
    WSCloseCode,
)
from ws_bridge.components.events.handlers import invoke_handler
from ws_bridge.components.events.types import OutboundEnvelope

if TYPE_CHECKING:
    from ws_bridge.components.connection.handle import ConnectionHandle
    from ws_bridge.components.connection.registry import ConnectionRegistry
    from ws_bridge.components.events.handlers import MessageHandlers
    from ws_bridge.components.metrics.collector import MetricsCollector
    from ws_bridge.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)


class ConnectionLifecycle:
    """
    Manages the lifecycle of bridge connections.

    Responsibilities:
    - Register new connections and send the welcome envelope
    - Remove closed or errored connections
    - Fire on_client_connect / on_client_disconnect (the latter at most once
      per connection, whichever of close/error comes first)
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        broadcaster: "ConnectionBroadcaster",
        metrics: "MetricsCollector",
        get_handlers: Callable[[], "MessageHandlers"],
        is_accepting: Callable[[], bool],
    ) -> None:
        """
        Args:
            registry: Connection registry.
            broadcaster: Used to send the welcome envelope and close rejects.
            metrics: Collects connection counters.
            get_handlers: Returns the current handler set.
            is_accepting: False while the bridge is stopped or stopping.
        """
        self._registry = registry
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._get_handlers = get_handlers
        self._is_accepting = is_accepting

    async def open(self, handle: "ConnectionHandle") -> str | None:
        """
        Register a newly opened connection.

        Order: register, on_client_connect, welcome envelope. A failed
        welcome is logged and does not undo the registration.

        Returns:
            The assigned client id, or None if the bridge is not accepting
            connections (the handle is closed with 1001 in that case).
        """
        if not self._is_accepting():
            self._metrics.increment("connection", "rejected")
            logger.info("Rejecting connection, bridge not running")
            await self._broadcaster.close_handle(
                UNKNOWN_CLIENT_ID, handle, WSCloseCode.GOING_AWAY, SHUTDOWN_REASON
            )
            return None

        client_id = self._registry.register(handle)
        token = client_id_var.set(client_id)
        try:
            self._metrics.increment("connection", "opened")
            logger.info("Client connected", client_id=client_id, total=self._registry.size())

            await invoke_handler(
                "on_client_connect", self._get_handlers().on_client_connect, client_id
            )

            welcome = OutboundEnvelope.connected(client_id)
            if not await self._broadcaster.reply(handle, welcome, drop_on_failure=False):
                logger.warning("Failed to send welcome message", client_id=client_id)
        finally:
            client_id_var.reset(token)
        return client_id

    async def close(self, handle: "ConnectionHandle") -> str | None:
        """
        Handle a closed connection.

        Returns:
            The client id if the handle was registered, else None.
        """
        client_id = get_client_id(handle)
        if client_id is None:
            return None

        removed = self._registry.remove(client_id)
        if removed:
            self._metrics.increment("connection", "closed")
            logger.info("Client disconnected", client_id=client_id, total=self._registry.size())
        await self._notify_disconnect(handle, client_id)
        return client_id

    async def error(self, handle: "ConnectionHandle", error: BaseException | str) -> str | None:
        """
        Handle a transport-reported error. Treated as an implicit disconnect.

        Returns:
            The client id if the handle was registered, else None.
        """
        client_id = get_client_id(handle)
        self._metrics.increment("connection", "errored")
        logger.error(
            "WebSocket error for client",
            client_id=client_id or UNKNOWN_CLIENT_ID,
            error_type=type(error).__name__ if isinstance(error, BaseException) else "str",
            error=str(error),
        )
        if client_id is None:
            return None

        self._registry.remove(client_id)
        await self._notify_disconnect(handle, client_id)
        return client_id

    async def _notify_disconnect(self, handle: "ConnectionHandle", client_id: str) -> None:
        metadata = handle.metadata
        if metadata is None or metadata.disconnect_notified:
            return
        metadata.disconnect_notified = True

        token = client_id_var.set(client_id)
        try:
            await invoke_handler(
                "on_client_disconnect", self._get_handlers().on_client_disconnect, client_id
            )
        finally:
            client_id_var.reset(token)
