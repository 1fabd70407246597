"""
Core WebSocket Bridge components.

Foundational components: constants, log helpers, and exceptions.
"""

from ws_bridge.components.core.constants import (
    WSCloseCode,
    MessageType,
    RESERVED_OUTBOUND_TYPES,
)
from ws_bridge.components.core.context import sanitize_log_data
from ws_bridge.components.core.exceptions import (
    BridgeError,
    BridgeAlreadyRunningError,
    BridgeStartupError,
    EnvelopeEncodingError,
)

__all__ = [
    # Constants
    "WSCloseCode",
    "MessageType",
    "RESERVED_OUTBOUND_TYPES",
    # Context
    "sanitize_log_data",
    # Exceptions
    "BridgeError",
    "BridgeAlreadyRunningError",
    "BridgeStartupError",
    "EnvelopeEncodingError",
]
