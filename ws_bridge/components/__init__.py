"""
WebSocket Bridge Components.

Domain-specific modules:
- core/       - Foundational components (constants, context, exceptions)
- connection/ - Connection handles, registry, heartbeat
- events/     - Envelope types and handler slots
- endpoints/  - Starlette WebSocket endpoint
- metrics/    - Delivery and connection counters

New code should import from specific submodules for clarity.
"""

from ws_bridge.components.core.constants import WSCloseCode, MessageType
from ws_bridge.components.core.context import sanitize_log_data
from ws_bridge.components.connection.handle import (
    ConnectionHandle,
    ConnectionMetadata,
    ReadyState,
    StarletteConnection,
)
from ws_bridge.components.connection.registry import ConnectionRegistry, ConnectionRecord
from ws_bridge.components.connection.heartbeat import handle_heartbeat, is_heartbeat
from ws_bridge.components.events.types import (
    ClientMessage,
    InboundEnvelope,
    OutboundEnvelope,
    ServerStatus,
)
from ws_bridge.components.events.handlers import MessageHandlers, invoke_handler
from ws_bridge.components.metrics.collector import MetricsCollector

__all__ = [
    # Core
    "WSCloseCode",
    "MessageType",
    "sanitize_log_data",
    # Connection
    "ConnectionHandle",
    "ConnectionMetadata",
    "ReadyState",
    "StarletteConnection",
    "ConnectionRegistry",
    "ConnectionRecord",
    "handle_heartbeat",
    "is_heartbeat",
    # Events
    "ClientMessage",
    "InboundEnvelope",
    "OutboundEnvelope",
    "ServerStatus",
    "MessageHandlers",
    "invoke_handler",
    # Metrics
    "MetricsCollector",
]
