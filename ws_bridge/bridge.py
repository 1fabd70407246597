"""
WebSocket Bridge.

Thin orchestrator that composes modular components:
- ConnectionRegistry: client_id -> handle mapping
- ConnectionLifecycle: opened / closed / errored events
- MessageDispatcher: inbound frame protocol (parse, heartbeat, handlers)
- ConnectionBroadcaster: broadcast / unicast delivery
- ConnectionStats: status snapshot

The transport (uvicorn + FastAPI by default) is created on start() and feeds
handle_open / handle_message / handle_close / handle_error.

Usage:
    bridge = WebSocketBridge(
        BridgeConfig.resolve(port=3001),
        MessageHandlers(on_custom_message=on_custom),
    )
    await bridge.start()
    await bridge.send({"x": 1}, "evt")
    await bridge.stop()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.config.logging import get_logger
from shared.config.settings import settings
from ws_bridge.components.connection.registry import ConnectionRegistry
from ws_bridge.components.core.constants import (
    DEFAULT_MESSAGE_TYPE,
    RESERVED_OUTBOUND_TYPES,
    SHUTDOWN_REASON,
    WSCloseCode,
)
from ws_bridge.components.core.exceptions import BridgeAlreadyRunningError, BridgeStartupError
from ws_bridge.components.events.handlers import MessageHandlers
from ws_bridge.components.events.types import OutboundEnvelope, ServerStatus
from ws_bridge.components.metrics.collector import MetricsCollector
from ws_bridge.core.connection import (
    ConnectionBroadcaster,
    ConnectionLifecycle,
    ConnectionStats,
    MessageDispatcher,
)

if TYPE_CHECKING:
    from ws_bridge.components.connection.handle import ConnectionHandle

logger = get_logger(__name__)

__all__ = [
    "BridgeConfig",
    "BridgeState",
    "Transport",
    "WebSocketBridge",
]


class BridgeConfig(BaseModel):
    """
    Immutable listening configuration, resolved once at construction.

    Defaults come from settings (WS_BRIDGE_HOST / WS_BRIDGE_PORT /
    WS_BRIDGE_PATH), which default to localhost:3001/ws. Port 0 asks the OS
    for a free port.
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(default_factory=lambda: settings.ws_bridge_port, ge=0, le=65535)
    host: str = Field(default_factory=lambda: settings.ws_bridge_host, min_length=1)
    path: str = Field(default_factory=lambda: settings.ws_bridge_path)

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("path must start with '/'")
        return value

    @classmethod
    def resolve(
        cls,
        config: "BridgeConfig | Mapping[str, Any] | None" = None,
        **overrides: Any,
    ) -> "BridgeConfig":
        """
        Build a config from a partial mapping and/or keyword overrides.

        None and empty-string values fall back to the defaults.
        """
        if isinstance(config, BridgeConfig):
            values = config.model_dump()
        else:
            values = dict(config or {})
        values.update(overrides)
        return cls(**{key: value for key, value in values.items() if value not in (None, "")})

    def matches_path(self, path: str) -> bool:
        """Upgrade policy: only the exact configured path is eligible."""
        return path == self.path

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{self.path}"


class BridgeState(str, Enum):
    """
    Lifecycle states. STARTING/STOPPING only exist while start()/stop() await.

    Connections are accepted in STARTING as well as RUNNING: the transport may
    serve its first upgrade before start() returns.
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class Transport(Protocol):
    """Listening resource owned by the bridge while it runs."""

    async def start(self) -> None:
        """Bind and begin serving. Raises OSError or BridgeStartupError on failure."""
        ...

    async def stop(self) -> None:
        """Stop serving and release the listening resource."""
        ...


TransportFactory = Callable[["WebSocketBridge"], Transport]


def _default_transport_factory(bridge: "WebSocketBridge") -> Transport:
    from ws_bridge.core.transport import UvicornTransport

    return UvicornTransport(bridge)


class WebSocketBridge:
    """
    Minimal WebSocket broadcast server for embedding in a host process.

    Lifecycle: STOPPED -> RUNNING -> STOPPED. Outbound operations on a
    stopped bridge log a warning and do nothing.
    """

    def __init__(
        self,
        config: BridgeConfig | Mapping[str, Any] | None = None,
        handlers: MessageHandlers | Mapping[str, Any] | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        send_timeout: float | None = None,
        close_timeout: float | None = None,
    ) -> None:
        """
        Args:
            config: BridgeConfig or a partial mapping of port/host/path.
            handlers: Initial handler set.
            transport_factory: Builds the transport on each start(). Defaults
                to the uvicorn transport.
            send_timeout: Per-write timeout (default: settings.ws_send_timeout).
            close_timeout: Per-close timeout (default: settings.ws_close_timeout).
        """
        self._config = BridgeConfig.resolve(config)
        self._handlers = MessageHandlers().merge(handlers)
        self._transport_factory = transport_factory or _default_transport_factory
        self._transport: Transport | None = None
        self._state = BridgeState.STOPPED
        self._started_at: float | None = None

        # Core components
        self._registry = ConnectionRegistry()
        self._metrics = MetricsCollector()

        self._broadcaster = ConnectionBroadcaster(
            registry=self._registry,
            metrics=self._metrics,
            send_timeout=send_timeout if send_timeout is not None else settings.ws_send_timeout,
            close_timeout=close_timeout if close_timeout is not None else settings.ws_close_timeout,
        )

        self._lifecycle = ConnectionLifecycle(
            registry=self._registry,
            broadcaster=self._broadcaster,
            metrics=self._metrics,
            get_handlers=lambda: self._handlers,
            is_accepting=lambda: self._state in (BridgeState.STARTING, BridgeState.RUNNING),
        )

        self._dispatcher = MessageDispatcher(
            broadcaster=self._broadcaster,
            metrics=self._metrics,
            get_handlers=lambda: self._handlers,
        )

        self._stats = ConnectionStats(
            registry=self._registry,
            metrics=self._metrics,
            config=self._config,
            is_running=lambda: self.is_running,
            get_started_at=lambda: self._started_at,
        )

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def handlers(self) -> MessageHandlers:
        return self._handlers

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is BridgeState.RUNNING

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Bind host:port and start accepting connections.

        Raises:
            BridgeAlreadyRunningError: If the bridge is not stopped. State and
                registry are left untouched.
            BridgeStartupError: If the transport cannot bind. State stays STOPPED.
        """
        if self._state is not BridgeState.STOPPED:
            raise BridgeAlreadyRunningError()

        self._state = BridgeState.STARTING
        transport = self._transport_factory(self)
        started = False
        try:
            try:
                await transport.start()
            except OSError as e:
                raise BridgeStartupError(self._config.host, self._config.port, str(e)) from e
            started = True
        except BridgeStartupError as e:
            logger.error(
                "Failed to start WebSocket bridge",
                host=self._config.host,
                port=self._config.port,
                error=e.reason,
            )
            raise
        finally:
            if not started:
                self._state = BridgeState.STOPPED

        self._transport = transport
        self._started_at = time.monotonic()
        self._state = BridgeState.RUNNING
        logger.info("WebSocket bridge started", url=self._config.url)

    async def stop(self) -> None:
        """
        Close every connection and release the listening resource.

        No-op unless running. Close errors against dead handles are
        swallowed; in-flight sends to closed handles fail silently.
        """
        if self._state is not BridgeState.RUNNING:
            return

        self._state = BridgeState.STOPPING
        records = []
        try:
            records = self._registry.clear()
            await asyncio.gather(*(
                self._broadcaster.close_handle(
                    record.client_id, record.handle, WSCloseCode.NORMAL, SHUTDOWN_REASON
                )
                for record in records
            ))
            await self._broadcaster.await_pending_closes()

            if self._transport is not None:
                try:
                    await self._transport.stop()
                except Exception as e:
                    logger.error("Error stopping transport", error=str(e), exc_info=True)
        finally:
            self._transport = None
            self._started_at = None
            self._state = BridgeState.STOPPED

        logger.info("WebSocket bridge stopped", closed_connections=len(records))

    async def __aenter__(self) -> "WebSocketBridge":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # =========================================================================
    # Handlers
    # =========================================================================

    def set_handlers(
        self,
        handlers: MessageHandlers | Mapping[str, Any] | None = None,
        /,
        **kwargs: Any,
    ) -> None:
        """
        Merge handlers into the current set.

        Slots present in the update overwrite, slots absent are preserved.
        See MessageHandlers.merge for the exact rules.
        """
        self._handlers = self._handlers.merge(handlers, **kwargs)
        logger.debug("Handlers updated", active=self._handlers.active())

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send(self, data: Any, message_type: str = DEFAULT_MESSAGE_TYPE) -> int:
        """
        Broadcast an envelope (without clientId) to every open connection.

        Per-connection failures remove that connection and do not stop
        delivery to the others.

        Raises:
            EnvelopeEncodingError: If data is not JSON-serializable. Also raised
                when message_type is not a string.

        Returns:
            Number of connections written to (0 if not running).
        """
        if not self.is_running:
            self._metrics.increment("delivery", "skipped_not_running")
            logger.warning("WebSocket bridge is not running", operation="send", type=message_type)
            return 0
        envelope = OutboundEnvelope.build(message_type, data)
        self._warn_if_reserved(message_type, "send")
        return await self._broadcaster.broadcast(envelope)

    async def send_to_client(
        self,
        client_id: str,
        data: Any,
        message_type: str = DEFAULT_MESSAGE_TYPE,
    ) -> bool:
        """
        Send an envelope carrying clientId to one client.

        Raises:
            EnvelopeEncodingError: If data is not JSON-serializable. Also raised
                when message_type is not a string.

        Returns:
            True if the envelope was written.
        """
        if not self.is_running:
            self._metrics.increment("delivery", "skipped_not_running")
            logger.warning(
                "WebSocket bridge is not running",
                operation="send_to_client",
                client_id=client_id,
                type=message_type,
            )
            return False
        if client_id not in self._registry:
            logger.warning("Client not found", client_id=client_id, type=message_type)
            return False
        envelope = OutboundEnvelope.build(message_type, data, client_id)
        self._warn_if_reserved(message_type, "send_to_client")
        return await self._broadcaster.unicast(client_id, envelope)

    def _warn_if_reserved(self, message_type: str, operation: str) -> None:
        if message_type in RESERVED_OUTBOUND_TYPES:
            logger.warning("Sending a reserved message type", operation=operation, type=message_type)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_status(self) -> ServerStatus:
        return self._stats.get_status()

    def get_stats(self) -> dict[str, Any]:
        return self._stats.get_stats()

    def get_connected_clients(self) -> list[str]:
        return self._registry.client_ids()

    def is_client_connected(self, client_id: str) -> bool:
        return self._registry.is_open(client_id)

    # =========================================================================
    # Transport events
    # =========================================================================

    async def handle_open(self, handle: "ConnectionHandle") -> str | None:
        """Connection opened. Returns the assigned client id, None if rejected."""
        return await self._lifecycle.open(handle)

    async def handle_message(self, handle: "ConnectionHandle", raw: str | bytes) -> None:
        """Frame received on a connection."""
        await self._dispatcher.dispatch(handle, raw)

    async def handle_close(self, handle: "ConnectionHandle") -> str | None:
        """Connection closed."""
        return await self._lifecycle.close(handle)

    async def handle_error(self, handle: "ConnectionHandle", error: BaseException | str) -> str | None:
        """Transport error on a connection; treated as a disconnect."""
        return await self._lifecycle.error(handle, error)

    def __repr__(self) -> str:
        return (
            f"WebSocketBridge(url={self._config.url!r}, state={self._state.value}, "
            f"clients={self._registry.size()})"
        )
