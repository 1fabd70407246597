"""
Inbound Frame Dispatcher.

Implements the per-frame protocol:
1. Parse. A malformed frame gets one error envelope back and goes no further.
2. Heartbeat. A ping gets one pong back and goes no further.
3. Dispatch. on_message, then on_custom_message.

Nothing in here raises into the transport loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from pydantic import ValidationError

from shared.config.logging import client_id_var, get_logger
from ws_bridge.components.connection.handle import get_client_id
from ws_bridge.components.connection.heartbeat import handle_heartbeat
from ws_bridge.components.core.constants import UNKNOWN_CLIENT_ID
from ws_bridge.components.core.context import sanitize_log_data
from ws_bridge.components.events.handlers import invoke_handler
from ws_bridge.components.events.types import (
    ClientMessage,
    InboundEnvelope,
    OutboundEnvelope,
    now_ms,
)

if TYPE_CHECKING:
    from ws_bridge.components.connection.handle import ConnectionHandle
    from ws_bridge.components.events.handlers import MessageHandlers
    from ws_bridge.components.metrics.collector import MetricsCollector
    from ws_bridge.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)


class MessageDispatcher:
    """Runs the inbound protocol for one frame at a time."""

    def __init__(
        self,
        broadcaster: "ConnectionBroadcaster",
        metrics: "MetricsCollector",
        get_handlers: Callable[[], "MessageHandlers"],
    ) -> None:
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._get_handlers = get_handlers

    async def dispatch(self, handle: "ConnectionHandle", raw: str | bytes) -> None:
        """
        Process one raw frame received on handle.

        The client id comes from the handle's metadata, never from the frame.
        """
        client_id = get_client_id(handle) or UNKNOWN_CLIENT_ID
        received_at = now_ms()
        self._metrics.increment("inbound", "frames")

        token = client_id_var.set(client_id)
        try:
            try:
                envelope = InboundEnvelope.parse_frame(raw)
            except (ValueError, RecursionError) as e:
                await self._reject(handle, client_id, raw, e)
                return

            async def reply(outbound: OutboundEnvelope) -> bool:
                return await self._broadcaster.reply(handle, outbound)

            if await handle_heartbeat(envelope, reply):
                self._metrics.increment("inbound", "pings")
                return

            await self._dispatch_to_handlers(envelope, client_id, received_at)
        finally:
            client_id_var.reset(token)

    async def _reject(
        self,
        handle: "ConnectionHandle",
        client_id: str,
        raw: str | bytes,
        error: Exception,
    ) -> None:
        self._metrics.increment("inbound", "malformed")
        if isinstance(error, ValidationError) and error.error_count():
            reason = error.errors()[0]["type"]
        else:
            reason = type(error).__name__
        logger.warning(
            "Failed to parse message from client",
            client_id=client_id,
            reason=reason,
            frame=sanitize_log_data(raw),
        )
        if not await self._broadcaster.reply(handle, OutboundEnvelope.error()):
            logger.warning("Failed to send error response", client_id=client_id)

    async def _dispatch_to_handlers(
        self,
        envelope: InboundEnvelope,
        client_id: str,
        received_at: int,
    ) -> None:
        handlers = self._get_handlers()
        message = ClientMessage(
            type=envelope.type,
            data=envelope.data,
            client_id=client_id,
            timestamp=received_at,
        )
        logger.debug("Message received", client_id=client_id, type=envelope.type)

        if handlers.on_message is not None:
            if not await invoke_handler("on_message", handlers.on_message, message):
                self._metrics.increment("inbound", "handler_errors")

        if handlers.on_custom_message is not None:
            if not await invoke_handler(
                "on_custom_message",
                handlers.on_custom_message,
                envelope.type,
                envelope.data,
                client_id,
            ):
                self._metrics.increment("inbound", "handler_errors")
