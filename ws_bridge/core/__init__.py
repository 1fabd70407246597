"""
WebSocket Bridge Core Module.

Components the bridge composes:
- connection/: lifecycle, dispatch, broadcasting, stats
- transport:   uvicorn server embedding (imported on demand)
"""

from ws_bridge.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionStats,
    MessageDispatcher,
)

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionStats",
    "MessageDispatcher",
]
