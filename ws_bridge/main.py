"""
WebSocket Bridge ASGI application.

create_app() builds the FastAPI app a bridge is served with:
- WebSocket upgrades on the bridge path run BridgeEndpoint
- WebSocket upgrades on any other path are refused with 404
- Every plain HTTP request gets 404 "WebSocket server"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from shared.config.logging import get_logger
from ws_bridge import __version__
from ws_bridge.components.core.constants import NOT_FOUND_BODY, WSCloseCode
from ws_bridge.components.endpoints.base import BridgeEndpoint

if TYPE_CHECKING:
    from ws_bridge.bridge import BridgeConfig, WebSocketBridge

logger = get_logger(__name__)


class PathGuardMiddleware:
    """
    Refuse WebSocket upgrades outside the bridge path.

    Pure ASGI middleware (BaseHTTPMiddleware does not see websocket scopes).
    Uses the websocket.http.response extension to answer 404 when the server
    supports it, otherwise closes before accept (servers answer 403).
    """

    def __init__(self, app: ASGIApp, config: "BridgeConfig") -> None:
        self.app = app
        self.config = config

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket" and not self.config.matches_path(scope["path"]):
            logger.debug("Refusing upgrade on unknown path", path=scope["path"])
            await self._refuse(scope, send)
            return
        await self.app(scope, receive, send)

    async def _refuse(self, scope: Scope, send: Send) -> None:
        if "websocket.http.response" in scope.get("extensions", {}):
            await send({
                "type": "websocket.http.response.start",
                "status": 404,
                "headers": [(b"content-type", b"text/plain; charset=utf-8")],
            })
            await send({
                "type": "websocket.http.response.body",
                "body": NOT_FOUND_BODY.encode("utf-8"),
            })
            return
        await send({"type": "websocket.close", "code": WSCloseCode.POLICY_VIOLATION})


def create_app(bridge: "WebSocketBridge") -> FastAPI:
    """Build the ASGI app serving one bridge."""
    app = FastAPI(
        title="WebSocket Bridge",
        description="Broadcast channel for a host application",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.websocket(bridge.config.path)
    async def bridge_websocket(websocket: WebSocket):
        """WebSocket endpoint for bridge clients."""
        endpoint = BridgeEndpoint(websocket, bridge)
        await endpoint.run()

    @app.exception_handler(404)
    async def not_found(request: Request, exc: Exception):
        return PlainTextResponse(NOT_FOUND_BODY, status_code=404)

    @app.exception_handler(405)
    async def method_not_allowed(request: Request, exc: Exception):
        return PlainTextResponse(NOT_FOUND_BODY, status_code=404)

    app.add_middleware(PathGuardMiddleware, config=bridge.config)
    return app
