"""
Connection Statistics.

Builds the read-only status snapshot from the registry, the metrics
collector and the bridge's configuration.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable

from ws_bridge.components.events.types import ServerStatus

if TYPE_CHECKING:
    from ws_bridge.bridge import BridgeConfig
    from ws_bridge.components.connection.registry import ConnectionRegistry
    from ws_bridge.components.metrics.collector import MetricsCollector


class ConnectionStats:
    """Pure reads over current bridge state; no side effects."""

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        config: "BridgeConfig",
        is_running: Callable[[], bool],
        get_started_at: Callable[[], float | None],
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._config = config
        self._is_running = is_running
        self._get_started_at = get_started_at

    def get_status(self) -> ServerStatus:
        running = self._is_running()
        started_at = self._get_started_at()
        uptime = time.monotonic() - started_at if running and started_at is not None else 0.0
        snapshot = self._metrics.get_snapshot()
        delivery = snapshot["delivery"]
        return ServerStatus(
            is_running=running,
            connected_clients=self._registry.size(),
            port=self._config.port,
            host=self._config.host,
            path=self._config.path,
            uptime_seconds=round(uptime, 3),
            messages_sent=delivery["messages_sent"],
            send_failures=delivery["send_failures"],
            broadcasts=delivery["broadcasts"],
            malformed_frames=snapshot["inbound"]["malformed"],
        )

    def get_stats(self) -> dict[str, Any]:
        """Status plus the full metrics snapshot, for diagnostics."""
        return {
            **self.get_status().to_dict(),
            "metrics": self._metrics.get_snapshot(),
        }
