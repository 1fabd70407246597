"""
Metrics Collector for the WebSocket Bridge.

Thread-safe counters for delivery and connection events. Snapshots feed
WebSocketBridge.get_status().
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass


@dataclass
class DeliveryMetrics:
    """Metrics for outbound writes."""
    messages_sent: int = 0
    send_failures: int = 0
    broadcasts: int = 0
    unicasts: int = 0
    skipped_not_running: int = 0


@dataclass
class ConnectionMetrics:
    """Metrics for connection lifecycle."""
    opened: int = 0
    closed: int = 0
    errored: int = 0
    rejected: int = 0


@dataclass
class InboundMetrics:
    """Metrics for inbound frames."""
    frames: int = 0
    pings: int = 0
    malformed: int = 0
    handler_errors: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment("delivery", "messages_sent")
        metrics.add("delivery", "send_failures", 3)
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._delivery = DeliveryMetrics()
        self._connection = ConnectionMetrics()
        self._inbound = InboundMetrics()

    def _group(self, group: str):
        if group == "delivery":
            return self._delivery
        if group == "connection":
            return self._connection
        if group == "inbound":
            return self._inbound
        raise ValueError(f"Unknown metrics group: {group}")

    def add(self, group: str, name: str, count: int) -> None:
        """Add count to a counter."""
        target = self._group(group)
        if not hasattr(target, name):
            raise ValueError(f"Unknown {group} metric: {name}")
        with self._lock:
            setattr(target, name, getattr(target, name) + count)

    def increment(self, group: str, name: str) -> None:
        """Increment a counter by one."""
        self.add(group, name, 1)

    def get(self, group: str, name: str) -> int:
        target = self._group(group)
        with self._lock:
            return getattr(target, name)

    def get_snapshot(self) -> dict[str, dict[str, int]]:
        """Consistent copy of all counters."""
        with self._lock:
            return {
                "delivery": asdict(self._delivery),
                "connection": asdict(self._connection),
                "inbound": asdict(self._inbound),
            }

    def reset(self) -> None:
        """Zero all counters."""
        with self._lock:
            self._delivery = DeliveryMetrics()
            self._connection = ConnectionMetrics()
            self._inbound = InboundMetrics()
