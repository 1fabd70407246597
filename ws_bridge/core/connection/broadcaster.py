"""
Connection Broadcaster.

Writes envelopes to connections: broadcast to every open connection,
unicast to one client, and protocol replies (welcome, pong, error).

Write-failure policy: the failed connection is removed from the registry
before the send path returns, and its handle is force-closed in the
background with 1011 so the transport converges on the same state. The
transport's close event then fires on_client_disconnect. The welcome
envelope is the one write exempt from this (see reply()).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_bridge.components.connection.handle import get_client_id, is_handle_open
from ws_bridge.components.core.constants import UNKNOWN_CLIENT_ID, WSCloseCode

if TYPE_CHECKING:
    from ws_bridge.components.connection.handle import ConnectionHandle
    from ws_bridge.components.connection.registry import ConnectionRegistry
    from ws_bridge.components.events.types import OutboundEnvelope
    from ws_bridge.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionBroadcaster:
    """
    Handles writing envelopes to registered connections.

    Writes run concurrently with asyncio.gather; each write is bounded by
    send_timeout and never raises into the caller.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        send_timeout: float,
        close_timeout: float,
    ) -> None:
        """
        Args:
            registry: Connection registry used to resolve and drop targets.
            metrics: Collects delivery counters.
            send_timeout: Seconds before a write is treated as failed.
            close_timeout: Seconds to wait for a force-close.
        """
        self._registry = registry
        self._metrics = metrics
        self._send_timeout = send_timeout
        self._close_timeout = close_timeout
        self._pending_closes: set[asyncio.Task] = set()

    async def broadcast(self, envelope: "OutboundEnvelope") -> int:
        """
        Write one envelope to every connection open at call time.

        Raises:
            EnvelopeEncodingError: If the envelope cannot be serialized
                (nothing is written in that case).

        Returns:
            Number of connections the envelope was written to.
        """
        text = envelope.to_json()
        targets = [
            (client_id, handle)
            for client_id, handle in self._registry.all()
            if is_handle_open(handle)
        ]
        self._metrics.increment("delivery", "broadcasts")
        if not targets:
            logger.debug("Broadcast has no open connections", type=envelope.type)
            return 0

        results = await asyncio.gather(
            *(self.deliver(client_id, handle, text) for client_id, handle in targets)
        )
        sent = sum(1 for ok in results if ok)
        failed = len(results) - sent

        if failed:
            logger.warning(
                "Broadcast partially failed",
                type=envelope.type,
                sent=sent,
                failed=failed,
            )
        elif sent:
            logger.info("Broadcast sent", type=envelope.type, recipients=sent)
        return sent

    async def unicast(self, client_id: str, envelope: "OutboundEnvelope") -> bool:
        """
        Write one envelope to a single registered client.

        Raises:
            EnvelopeEncodingError: If the envelope cannot be serialized.

        Returns:
            True if the envelope was written.
        """
        handle = self._registry.get(client_id)
        if handle is None:
            logger.warning("Client not found", client_id=client_id, type=envelope.type)
            return False

        text = envelope.to_json()
        self._metrics.increment("delivery", "unicasts")
        if not is_handle_open(handle):
            logger.debug("Client not open, skipping send", client_id=client_id, type=envelope.type)
            return False

        ok = await self.deliver(client_id, handle, text)
        if ok:
            logger.debug("Sent to client", client_id=client_id, type=envelope.type)
        return ok

    async def reply(
        self,
        handle: "ConnectionHandle",
        envelope: "OutboundEnvelope",
        drop_on_failure: bool = True,
    ) -> bool:
        """
        Write a protocol envelope back to the connection that triggered it.

        Used for welcome, pong and error envelopes. A reply that cannot be
        encoded is a bug in the bridge, so EnvelopeEncodingError propagates.

        Args:
            drop_on_failure: False for the welcome envelope, whose failure
                must not undo the registration.
        """
        client_id = get_client_id(handle) or UNKNOWN_CLIENT_ID
        return await self.deliver(
            client_id, handle, envelope.to_json(), drop_on_failure=drop_on_failure
        )

    async def deliver(
        self,
        client_id: str,
        handle: "ConnectionHandle",
        text: str,
        drop_on_failure: bool = True,
    ) -> bool:
        """
        Write pre-serialized text to one handle.

        On any failure (exception or timeout) the connection is dropped from
        the registry before this returns, unless drop_on_failure is False.

        Returns:
            True on success, False if the write failed.
        """
        try:
            await asyncio.wait_for(handle.send(text), timeout=self._send_timeout)
        except Exception as e:
            if drop_on_failure:
                self._drop(client_id, handle, e)
            else:
                self._metrics.increment("delivery", "send_failures")
                logger.warning(
                    "Failed to send message to client",
                    client_id=client_id,
                    error_type=type(e).__name__,
                    error=str(e) or repr(e),
                    removed=False,
                )
            return False
        self._metrics.increment("delivery", "messages_sent")
        return True

    def _drop(self, client_id: str, handle: "ConnectionHandle", error: Exception) -> None:
        """Remove a connection whose write failed and schedule a force-close."""
        removed = client_id != UNKNOWN_CLIENT_ID and self._registry.remove(client_id)
        self._metrics.increment("delivery", "send_failures")
        logger.warning(
            "Failed to send message to client",
            client_id=client_id,
            error_type=type(error).__name__,
            error=str(error) or repr(error),
            removed=removed,
            total=self._registry.size(),
        )
        task = asyncio.get_running_loop().create_task(
            self._force_close(client_id, handle),
            name=f"force_close_{client_id}",
        )
        self._pending_closes.add(task)
        task.add_done_callback(self._pending_closes.discard)

    async def _force_close(self, client_id: str, handle: "ConnectionHandle") -> None:
        try:
            await asyncio.wait_for(
                handle.close(WSCloseCode.SERVER_ERROR, "Write failed"),
                timeout=self._close_timeout,
            )
        except Exception as e:
            # Expected when the transport is already gone
            logger.debug("Force-close failed", client_id=client_id, error=str(e))

    async def close_handle(self, client_id: str, handle: "ConnectionHandle", code: int, reason: str) -> bool:
        """
        Close one handle, tolerating handles that are already dead.

        Returns:
            True if close completed without error.
        """
        try:
            await asyncio.wait_for(handle.close(code, reason), timeout=self._close_timeout)
            return True
        except Exception as e:
            logger.debug("Close failed", client_id=client_id, error=str(e))
            return False

    async def await_pending_closes(self) -> None:
        """Wait for background force-closes to finish."""
        if self._pending_closes:
            await asyncio.gather(*list(self._pending_closes), return_exceptions=True)

    @property
    def pending_closes(self) -> int:
        return len(self._pending_closes)
