"""
Connection Management Module.

Modular components composed by WebSocketBridge:
- lifecycle.py: Connection open/close/error
- dispatcher.py: Inbound frame protocol
- broadcaster.py: Outbound delivery
- stats.py: Status snapshot
"""

from ws_bridge.core.connection.broadcaster import ConnectionBroadcaster
from ws_bridge.core.connection.dispatcher import MessageDispatcher
from ws_bridge.core.connection.lifecycle import ConnectionLifecycle
from ws_bridge.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "MessageDispatcher",
    "ConnectionStats",
]
