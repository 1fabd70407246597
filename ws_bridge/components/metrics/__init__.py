"""
Metrics components.

Internal counters for delivery, connections, and inbound frames.
"""

from ws_bridge.components.metrics.collector import (
    MetricsCollector,
    DeliveryMetrics,
    ConnectionMetrics,
    InboundMetrics,
)

__all__ = [
    "MetricsCollector",
    "DeliveryMetrics",
    "ConnectionMetrics",
    "InboundMetrics",
]
