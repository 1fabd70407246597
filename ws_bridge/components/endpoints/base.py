"""
WebSocket Endpoint.

Turns one accepted Starlette WebSocket into the bridge's event stream:
opened -> received* -> closed, or errored then closed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from shared.config.logging import get_logger
from ws_bridge.components.connection.handle import StarletteConnection

if TYPE_CHECKING:
    from ws_bridge.bridge import WebSocketBridge

logger = get_logger(__name__)


class BridgeEndpoint:
    """
    Runs the connection loop for one client.

    Usage:
        @app.websocket("/ws")
        async def bridge_websocket(websocket: WebSocket):
            await BridgeEndpoint(websocket, bridge).run()
    """

    def __init__(self, websocket: WebSocket, bridge: "WebSocketBridge") -> None:
        self.websocket = websocket
        self.bridge = bridge
        self.handle = StarletteConnection(websocket)
        self.client_id: str | None = None

    async def run(self) -> None:
        """
        Main entry point.

        1. Accept the upgrade
        2. Register with the bridge (bridge sends the welcome envelope)
        3. Message loop
        4. Report error (if any) and close to the bridge
        """
        try:
            await self.websocket.accept()
        except Exception as e:
            logger.warning("WebSocket accept failed", error=str(e))
            return

        self.client_id = await self.bridge.handle_open(self.handle)
        if self.client_id is None:
            return  # Rejected, handle already closed

        try:
            await self._message_loop()
        except WebSocketDisconnect as e:
            logger.debug(
                "Client closed connection",
                client_id=self.client_id,
                code=e.code,
            )
        except Exception as e:
            await self.bridge.handle_error(self.handle, e)
        finally:
            await self.bridge.handle_close(self.handle)

    async def _message_loop(self) -> None:
        """
        Receive frames until the client disconnects.

        Text frames are passed through as str, binary frames as bytes; the
        bridge parses both the same way.
        """
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(
                    code=message.get("code", 1000),
                    reason=message.get("reason"),
                )

            text = message.get("text")
            if text is not None:
                await self.bridge.handle_message(self.handle, text)
                continue

            data = message.get("bytes")
            if data is not None:
                await self.bridge.handle_message(self.handle, data)
