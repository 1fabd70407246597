"""
Uvicorn transport.

Serves the bridge's FastAPI app with uvicorn on the caller's running event
loop, so the bridge can live inside a host application instead of owning
the process.

The listening socket is bound before uvicorn starts: uvicorn's own bind
path calls sys.exit() on failure, which must never happen inside a host
process. A bind error here surfaces from start() as OSError.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from typing import TYPE_CHECKING

import uvicorn

from shared.config.logging import get_logger
from shared.config.settings import settings
from ws_bridge.components.core.exceptions import BridgeStartupError
from ws_bridge.main import create_app

if TYPE_CHECKING:
    from ws_bridge.bridge import WebSocketBridge

logger = get_logger(__name__)

# How often start() checks whether uvicorn finished its startup
_STARTUP_POLL_INTERVAL = 0.01


class EmbeddedServer(uvicorn.Server):
    """uvicorn.Server that leaves signal handling to the host process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class UvicornTransport:
    """
    Transport that binds host:port and serves create_app(bridge).

    One instance serves one start()/stop() cycle; the bridge builds a new
    one on every start().
    """

    def __init__(
        self,
        bridge: "WebSocketBridge",
        shutdown_timeout: float | None = None,
    ) -> None:
        self._bridge = bridge
        self._shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else settings.ws_server_shutdown_timeout
        )
        self._socket: socket.socket | None = None
        self._server: EmbeddedServer | None = None
        self._task: asyncio.Task | None = None

    @property
    def bound_port(self) -> int | None:
        """Actual listening port (differs from the configured one when it is 0)."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def _bind(self) -> socket.socket:
        config = self._bridge.config
        family = socket.AF_INET6 if ":" in config.host else socket.AF_INET
        return socket.create_server((config.host, config.port), family=family)

    async def start(self) -> None:
        """
        Bind and serve until stop().

        Raises:
            OSError: If host:port cannot be bound.
            BridgeStartupError: If uvicorn exits before finishing startup.
        """
        self._socket = self._bind()
        uvicorn_config = uvicorn.Config(
            create_app(self._bridge),
            lifespan="off",
            log_config=None,
            access_log=False,
            timeout_graceful_shutdown=self._shutdown_timeout,
        )
        self._server = EmbeddedServer(uvicorn_config)
        self._task = asyncio.create_task(
            self._server.serve(sockets=[self._socket]),
            name="ws_bridge_server",
        )

        while not self._server.started:
            if self._task.done():
                error = None if self._task.cancelled() else self._task.exception()
                self._release_socket()
                config = self._bridge.config
                reason = str(error) if error is not None else "server exited during startup"
                raise BridgeStartupError(config.host, config.port, reason) from error
            await asyncio.sleep(_STARTUP_POLL_INTERVAL)

        logger.debug(
            "Uvicorn transport listening",
            host=self._bridge.config.host,
            port=self.bound_port,
        )

    async def stop(self) -> None:
        """Ask uvicorn to exit and wait for it, forcing after the timeout."""
        if self._server is None or self._task is None:
            return

        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self._shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Uvicorn shutdown timed out, forcing exit", timeout=self._shutdown_timeout)
            self._server.force_exit = True
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        finally:
            self._release_socket()
            self._server = None
            self._task = None

    def _release_socket(self) -> None:
        if self._socket is not None:
            with contextlib.suppress(OSError):
                self._socket.close()
            self._socket = None
