"""
Bridge exceptions.

Only start() and envelope encoding raise to the embedding application.
Everything else (malformed frames, write failures, transport errors) is
recovered and logged where it happens.

Usage:
    from ws_bridge.components.core.exceptions import BridgeAlreadyRunningError

    try:
        await bridge.start()
    except BridgeAlreadyRunningError:
        ...
"""

from typing import Any


class BridgeError(Exception):
    """Base class for all bridge errors."""


class BridgeAlreadyRunningError(BridgeError):
    """start() called while the bridge is already running."""

    def __init__(self, message: str = "WebSocket bridge is already running"):
        super().__init__(message)


class BridgeStartupError(BridgeError):
    """
    The transport could not bind or serve.

    The original OSError (port in use, permission denied, ...) is chained as
    __cause__ and kept on .host/.port for the caller's message.
    """

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to start WebSocket bridge on {host}:{port}: {reason}")


class EnvelopeEncodingError(BridgeError, ValueError):
    """Outbound data could not be serialized to JSON."""

    def __init__(self, message_type: str, data: Any, reason: str):
        self.message_type = message_type
        self.data_type = type(data).__name__
        super().__init__(
            f"Cannot encode '{message_type}' envelope with {self.data_type} data: {reason}"
        )
