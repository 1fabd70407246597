"""
Connection management components.

Handles, the client registry, and the ping/pong heartbeat.
"""

from ws_bridge.components.connection.handle import (
    ConnectionHandle,
    ConnectionMetadata,
    ReadyState,
    StarletteConnection,
    get_client_id,
    is_handle_open,
)
from ws_bridge.components.connection.registry import ConnectionRegistry, ConnectionRecord
from ws_bridge.components.connection.heartbeat import handle_heartbeat, is_heartbeat

__all__ = [
    "ConnectionHandle",
    "ConnectionMetadata",
    "ReadyState",
    "StarletteConnection",
    "get_client_id",
    "is_handle_open",
    "ConnectionRegistry",
    "ConnectionRecord",
    "handle_heartbeat",
    "is_heartbeat",
]
