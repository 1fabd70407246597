"""
WebSocket Bridge Constants.

Close codes, reserved message types and fixed protocol strings.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "MessageType",
    "RESERVED_OUTBOUND_TYPES",
    "DEFAULT_MESSAGE_TYPE",
    "UNKNOWN_CLIENT_ID",
    "WELCOME_MESSAGE",
    "INVALID_MESSAGE_FORMAT",
    "SHUTDOWN_REASON",
    "NOT_FOUND_BODY",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the bridge.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure, used for server shutdown
    GOING_AWAY = 1001  # Connection refused while the bridge is not running
    POLICY_VIOLATION = 1008  # Generic policy violation
    SERVER_ERROR = 1011  # Unexpected server error, used after a failed write


class MessageType:
    """
    Envelope type tags reserved by the protocol.

    Any other string is an application type and is relayed untouched.
    """

    # Inbound
    PING: Final[str] = "ping"

    # Outbound, generated internally
    CONNECTED: Final[str] = "connected"
    PONG: Final[str] = "pong"
    ERROR: Final[str] = "error"


# Allowed in send() but logged: clients cannot tell them from protocol replies
RESERVED_OUTBOUND_TYPES: frozenset[str] = frozenset({
    MessageType.CONNECTED,
    MessageType.PONG,
    MessageType.ERROR,
})

# Type used by send()/send_to_client() when the caller gives none
DEFAULT_MESSAGE_TYPE: Final[str] = "message"

# Logged for events from connections that never got a client id
UNKNOWN_CLIENT_ID: Final[str] = "unknown"

WELCOME_MESSAGE: Final[str] = "Connected to WebSocket bridge"
INVALID_MESSAGE_FORMAT: Final[str] = "Invalid message format"
SHUTDOWN_REASON: Final[str] = "Server shutting down"

# Body of the non-upgrade response for every path other than the bridge path
NOT_FOUND_BODY: Final[str] = "WebSocket server"
