"""
WebSocket endpoint components.
"""

from ws_bridge.components.endpoints.base import BridgeEndpoint

__all__ = ["BridgeEndpoint"]
