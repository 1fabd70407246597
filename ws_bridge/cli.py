"""
WebSocket Bridge CLI.

Runs a bridge standalone, mostly for trying clients against it:

    ws-bridge serve --port 3001 --demo
    ws-bridge config
"""

import asyncio
import time
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shared.config.logging import get_logger, setup_logging
from shared.config.settings import settings
from ws_bridge import __version__
from ws_bridge.bridge import BridgeConfig, WebSocketBridge
from ws_bridge.components.core.exceptions import BridgeStartupError
from ws_bridge.components.events.handlers import MessageHandlers
from ws_bridge.components.events.types import ClientMessage

app = typer.Typer(
    name="ws-bridge",
    help="WebSocket broadcast bridge",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)


# =============================================================================
# Demo handlers
# =============================================================================

def build_demo_handlers(bridge: WebSocketBridge) -> MessageHandlers:
    """
    Handlers for trying the bridge by hand.

    - chat    {"message": str}  -> chat_reply to the sender
    - command {"command": str}  -> logged
    Everything else is logged at debug level.
    """

    def on_message(message: ClientMessage) -> None:
        logger.debug("Demo received message", type=message.type, client_id=message.client_id)

    def on_client_connect(client_id: str) -> None:
        logger.info("Demo client joined", client_id=client_id, total=len(bridge.get_connected_clients()))

    def on_client_disconnect(client_id: str) -> None:
        logger.info("Demo client left", client_id=client_id, total=len(bridge.get_connected_clients()))

    async def on_custom_message(message_type: str, data: Any, client_id: str) -> None:
        payload = data if isinstance(data, dict) else {}
        if message_type == "chat":
            text = payload.get("message")
            await bridge.send_to_client(
                client_id,
                {"reply": f"Received: {text}", "timestamp": int(time.time() * 1000)},
                "chat_reply",
            )
        elif message_type == "command":
            logger.info("Demo command", client_id=client_id, command=payload.get("command"))

    return MessageHandlers(
        on_message=on_message,
        on_client_connect=on_client_connect,
        on_client_disconnect=on_client_disconnect,
        on_custom_message=on_custom_message,
    )


async def tick_loop(bridge: WebSocketBridge, interval: float) -> None:
    """Broadcast a tick envelope every interval seconds while the bridge runs."""
    sequence = 0
    while bridge.is_running:
        await asyncio.sleep(interval)
        sequence += 1
        await bridge.send({"sequence": sequence, "clients": len(bridge.get_connected_clients())}, "tick")


# =============================================================================
# Commands
# =============================================================================

@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: WS_BRIDGE_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: WS_BRIDGE_PORT)"),
    path: Optional[str] = typer.Option(None, help="Upgrade path (default: WS_BRIDGE_PATH)"),
    demo: bool = typer.Option(True, "--demo/--no-demo", help="Install the chat demo handlers"),
    tick: float = typer.Option(0.0, help="Broadcast a tick envelope every N seconds (0 = off)"),
):
    """Run the bridge until interrupted."""
    setup_logging()

    try:
        config = BridgeConfig.resolve(host=host, port=port, path=path)
    except ValueError as e:
        console.print(f"[red]✗ Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    for problem in settings.validate_production_settings():
        console.print(f"[yellow]! {escape(problem)}[/yellow]")

    async def _serve():
        bridge = WebSocketBridge(config)
        if demo:
            bridge.set_handlers(build_demo_handlers(bridge))

        await bridge.start()
        console.print(f"[green]✓ Listening on {config.url}[/green]")
        if demo:
            console.print('[dim]Try: {"type": "chat", "data": {"message": "Hello"}}[/dim]')

        ticker = asyncio.create_task(tick_loop(bridge, tick)) if tick > 0 else None
        try:
            await asyncio.Event().wait()
        finally:
            if ticker is not None:
                ticker.cancel()
            await bridge.stop()

    try:
        asyncio.run(_serve())
    except BridgeStartupError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[blue]Bridge stopped[/blue]")


@app.command()
def config():
    """Show the resolved bridge configuration."""
    resolved = BridgeConfig.resolve()

    table = Table(title="WebSocket Bridge Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("URL", resolved.url)
    table.add_row("Host", resolved.host)
    table.add_row("Port", str(resolved.port))
    table.add_row("Path", resolved.path)
    table.add_row("Send timeout", f"{settings.ws_send_timeout}s")
    table.add_row("Close timeout", f"{settings.ws_close_timeout}s")
    table.add_row("Environment", settings.environment)
    table.add_row("Version", __version__)

    console.print(table)


if __name__ == "__main__":
    app()
