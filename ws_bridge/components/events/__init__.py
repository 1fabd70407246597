"""
Event handling components.

Envelope types and host handler slots.
"""

from ws_bridge.components.events.types import (
    ClientMessage,
    InboundEnvelope,
    OutboundEnvelope,
    ServerStatus,
)
from ws_bridge.components.events.handlers import MessageHandlers, invoke_handler

__all__ = [
    # Envelope types
    "ClientMessage",
    "InboundEnvelope",
    "OutboundEnvelope",
    "ServerStatus",
    # Handlers
    "MessageHandlers",
    "invoke_handler",
]
