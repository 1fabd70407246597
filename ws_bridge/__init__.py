"""
WebSocket Bridge.

Embeddable broadcast channel between a host application and WebSocket
clients. The host starts a WebSocketBridge, pushes events with send() /
send_to_client(), and receives client messages through MessageHandlers.
"""

__version__ = "0.1.0"

from ws_bridge.bridge import BridgeConfig, BridgeState, WebSocketBridge
from ws_bridge.components.core.exceptions import (
    BridgeAlreadyRunningError,
    BridgeError,
    BridgeStartupError,
    EnvelopeEncodingError,
)
from ws_bridge.components.events.handlers import MessageHandlers
from ws_bridge.components.events.types import (
    ClientMessage,
    InboundEnvelope,
    OutboundEnvelope,
    ServerStatus,
)

__all__ = [
    "__version__",
    # Bridge
    "WebSocketBridge",
    "BridgeConfig",
    "BridgeState",
    # Handlers and envelopes
    "MessageHandlers",
    "ClientMessage",
    "InboundEnvelope",
    "OutboundEnvelope",
    "ServerStatus",
    # Errors
    "BridgeError",
    "BridgeAlreadyRunningError",
    "BridgeStartupError",
    "EnvelopeEncodingError",
]
