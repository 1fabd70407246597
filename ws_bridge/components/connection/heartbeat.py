"""
Heartbeat handling for the WebSocket Bridge.

A client frame {"type": "ping"} is answered with a pong envelope to that
client only. Heartbeats are internal: they never reach application handlers.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from ws_bridge.components.core.constants import MessageType
from ws_bridge.components.events.types import InboundEnvelope, OutboundEnvelope


def is_heartbeat(envelope: InboundEnvelope) -> bool:
    """True if the frame is a heartbeat ping."""
    return envelope.type == MessageType.PING


async def handle_heartbeat(
    envelope: InboundEnvelope,
    reply: Callable[[OutboundEnvelope], Awaitable[bool]],
) -> bool:
    """
    Centralized heartbeat handling.

    Args:
        envelope: The parsed client frame.
        reply: Writes an envelope back to the originating connection. Write
            failures are handled (and logged) by reply itself.

    Returns:
        True if the frame was a heartbeat and was consumed, False otherwise.
    """
    if not is_heartbeat(envelope):
        return False
    await reply(OutboundEnvelope.pong())
    return True
