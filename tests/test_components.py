"""
Tests for small components: heartbeat, metrics, Starlette handle adapter.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from starlette.websockets import WebSocketState

from ws_bridge.components.connection.handle import ReadyState, StarletteConnection
from ws_bridge.components.connection.heartbeat import handle_heartbeat
from ws_bridge.components.events.types import InboundEnvelope, OutboundEnvelope
from ws_bridge.components.metrics.collector import MetricsCollector


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_ping_replies_pong(self):
        reply = AsyncMock(return_value=True)

        consumed = await handle_heartbeat(InboundEnvelope(type="ping"), reply)

        assert consumed is True
        reply.assert_awaited_once()
        [pong] = reply.await_args.args
        assert pong.type == "pong"
        assert pong.data["timestamp"] == pong.timestamp

    @pytest.mark.asyncio
    async def test_other_types_pass_through(self):
        reply = AsyncMock()

        assert await handle_heartbeat(InboundEnvelope(type="pong"), reply) is False
        reply.assert_not_awaited()


class TestEnvelopeRoundTrip:
    @pytest.mark.parametrize(
        "data",
        [None, 0, "text", [1, "two", None], {"nested": {"list": [1.5, True]}}],
    )
    def test_outbound_parses_back(self, data):
        wire = OutboundEnvelope(type="evt", data=data).to_json()

        parsed = InboundEnvelope.parse_frame(wire)

        assert parsed.type == "evt"
        assert parsed.data == data
        assert json.loads(wire)["data"] == data


class TestMetricsCollector:
    def test_increment_and_snapshot(self):
        metrics = MetricsCollector()

        metrics.increment("delivery", "messages_sent")
        metrics.add("delivery", "messages_sent", 4)
        metrics.increment("inbound", "malformed")

        snapshot = metrics.get_snapshot()
        assert snapshot["delivery"]["messages_sent"] == 5
        assert snapshot["inbound"]["malformed"] == 1
        assert snapshot["connection"]["opened"] == 0

    def test_snapshot_is_a_copy(self):
        metrics = MetricsCollector()
        snapshot = metrics.get_snapshot()

        metrics.increment("connection", "opened")

        assert snapshot["connection"]["opened"] == 0

    def test_unknown_metric_rejected(self):
        metrics = MetricsCollector()

        with pytest.raises(ValueError):
            metrics.increment("delivery", "nope")
        with pytest.raises(ValueError):
            metrics.increment("nope", "messages_sent")

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment("connection", "closed")

        metrics.reset()

        assert metrics.get("connection", "closed") == 0


def make_websocket(client=WebSocketState.CONNECTED, application=WebSocketState.CONNECTED):
    websocket = MagicMock()
    websocket.client_state = client
    websocket.application_state = application
    websocket.send_text = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


class TestStarletteConnection:
    def test_ready_state_mapping(self):
        assert StarletteConnection(make_websocket()).ready_state is ReadyState.OPEN
        assert (
            StarletteConnection(make_websocket(application=WebSocketState.CONNECTING)).ready_state
            is ReadyState.CONNECTING
        )
        assert (
            StarletteConnection(make_websocket(client=WebSocketState.DISCONNECTED)).ready_state
            is ReadyState.CLOSED
        )

    @pytest.mark.asyncio
    async def test_send_writes_text(self):
        websocket = make_websocket()

        await StarletteConnection(websocket).send('{"type":"x"}')

        websocket.send_text.assert_awaited_once_with('{"type":"x"}')

    @pytest.mark.asyncio
    async def test_close_once(self):
        websocket = make_websocket()
        handle = StarletteConnection(websocket)

        await handle.close(1000, "bye")
        await handle.close(1000, "bye")

        websocket.close.assert_awaited_once_with(code=1000, reason="bye")
        assert handle.ready_state is ReadyState.CLOSING

    @pytest.mark.asyncio
    async def test_close_skipped_when_disconnected(self):
        websocket = make_websocket(client=WebSocketState.DISCONNECTED)

        await StarletteConnection(websocket).close(1000, "bye")

        websocket.close.assert_not_awaited()
