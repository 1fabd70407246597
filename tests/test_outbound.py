"""
Tests for broadcast and unicast delivery.

Tests verify:
- Broadcast envelopes carry no clientId and reach every open connection
- Non-open connections are skipped without being removed
- A failing connection is removed and force-closed; the others still receive
- Unicast envelopes carry the target clientId
- Unserializable data raises before anything is written
"""

import asyncio
import logging

import pytest

from ws_bridge.components.connection.handle import ReadyState
from ws_bridge.components.core.constants import WSCloseCode
from ws_bridge.components.core.exceptions import EnvelopeEncodingError

from tests.conftest import FakeHandle


async def open_handles(bridge, count, **kwargs):
    handles = []
    for _ in range(count):
        handle = FakeHandle(**kwargs)
        await bridge.handle_open(handle)
        handle.sent.clear()
        handles.append(handle)
    return handles


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_open_connection(self, running_bridge):
        handles = await open_handles(running_bridge, 3)

        sent = await running_bridge.send({"k": "v"}, "evt")

        assert sent == 3
        for handle in handles:
            [envelope] = handle.envelopes
            assert envelope["type"] == "evt"
            assert envelope["data"] == {"k": "v"}
            assert isinstance(envelope["timestamp"], int)
            assert "clientId" not in envelope

    @pytest.mark.asyncio
    async def test_default_type_is_message(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)

        await running_bridge.send([1, 2, 3])

        assert handle.envelopes[0]["type"] == "message"
        assert handle.envelopes[0]["data"] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_broadcast_with_no_clients(self, running_bridge):
        assert await running_bridge.send("hello") == 0
        assert running_bridge.get_status().broadcasts == 1

    @pytest.mark.asyncio
    async def test_closing_connections_are_skipped(self, running_bridge):
        open_handle, closing_handle = await open_handles(running_bridge, 2)
        closing_handle.ready_state = ReadyState.CLOSING

        sent = await running_bridge.send("x")

        assert sent == 1
        assert len(open_handle.sent) == 1
        assert closing_handle.sent == []
        assert running_bridge.registry.size() == 2

    @pytest.mark.asyncio
    async def test_failing_connection_is_removed_and_others_receive(self, running_bridge):
        good_a, good_b = await open_handles(running_bridge, 2)
        bad = FakeHandle()
        bad_id = await running_bridge.handle_open(bad)
        bad.fail_send = ConnectionResetError("peer gone")

        sent = await running_bridge.send({"n": 1}, "evt")
        await asyncio.sleep(0)
        await running_bridge._broadcaster.await_pending_closes()

        assert sent == 2
        assert len(good_a.sent) == 1
        assert len(good_b.sent) == 1
        assert bad_id not in running_bridge.get_connected_clients()
        assert bad.closes == [(WSCloseCode.SERVER_ERROR, "Write failed")]
        assert running_bridge.get_status().send_failures == 1

    @pytest.mark.asyncio
    async def test_slow_connection_times_out(self, running_bridge):
        class SlowHandle(FakeHandle):
            async def send(self, text):
                await asyncio.sleep(10)

        [fast] = await open_handles(running_bridge, 1)
        slow = SlowHandle()
        slow_id = await running_bridge.handle_open(slow)

        sent = await running_bridge.send("x")

        assert sent == 1
        assert len(fast.sent) == 1
        assert slow_id not in running_bridge.get_connected_clients()

    @pytest.mark.asyncio
    async def test_unserializable_data_raises_before_writing(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)

        with pytest.raises(EnvelopeEncodingError) as exc_info:
            await running_bridge.send(object(), "evt")

        assert exc_info.value.message_type == "evt"
        assert isinstance(exc_info.value, ValueError)
        assert handle.sent == []

    @pytest.mark.asyncio
    async def test_non_string_type_raises_encoding_error(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)

        with pytest.raises(EnvelopeEncodingError) as exc_info:
            await running_bridge.send({"x": 1}, 5)

        assert exc_info.value.message_type == 5
        assert "invalid type" in str(exc_info.value)
        assert handle.sent == []

    @pytest.mark.asyncio
    async def test_reserved_type_is_sent_with_warning(self, running_bridge, caplog):
        [handle] = await open_handles(running_bridge, 1)

        with caplog.at_level(logging.WARNING, logger="ws_bridge.bridge"):
            sent = await running_bridge.send({"x": 1}, "pong")

        assert sent == 1
        assert handle.envelopes[0]["type"] == "pong"
        assert any(record.getMessage() == "Sending a reserved message type" for record in caplog.records)

    @pytest.mark.asyncio
    async def test_status_counts_messages(self, running_bridge):
        await open_handles(running_bridge, 2)

        await running_bridge.send("a")
        await running_bridge.send("b")

        status = running_bridge.get_status()
        # Two welcomes plus two broadcasts to two clients
        assert status.messages_sent == 6
        assert status.broadcasts == 2
        assert status.connected_clients == 2


class TestUnicast:
    @pytest.mark.asyncio
    async def test_unicast_carries_client_id(self, running_bridge):
        target, other = await open_handles(running_bridge, 2)
        target_id = target.metadata.client_id

        assert await running_bridge.send_to_client(target_id, {"x": 1}, "direct") is True

        [envelope] = target.envelopes
        assert envelope == {
            "type": "direct",
            "data": {"x": 1},
            "timestamp": envelope["timestamp"],
            "clientId": target_id,
        }
        assert other.sent == []

    @pytest.mark.asyncio
    async def test_unknown_client_writes_nothing(self, running_bridge):
        handles = await open_handles(running_bridge, 2)

        assert await running_bridge.send_to_client("client_404_deadbeef", {"x": 1}) is False

        for handle in handles:
            assert handle.sent == []

    @pytest.mark.asyncio
    async def test_non_string_type_raises_before_writing(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)

        with pytest.raises(EnvelopeEncodingError):
            await running_bridge.send_to_client(handle.metadata.client_id, "x", None)

        assert handle.sent == []

    @pytest.mark.asyncio
    async def test_non_open_client_is_skipped(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)
        handle.ready_state = ReadyState.CLOSING

        assert await running_bridge.send_to_client(handle.metadata.client_id, "x") is False
        assert handle.sent == []

    @pytest.mark.asyncio
    async def test_unicast_failure_removes_client(self, running_bridge):
        [handle] = await open_handles(running_bridge, 1)
        client_id = handle.metadata.client_id
        handle.fail_send = BrokenPipeError("broken")

        assert await running_bridge.send_to_client(client_id, "x") is False
        await running_bridge._broadcaster.await_pending_closes()

        assert running_bridge.is_client_connected(client_id) is False
        assert handle.closes == [(WSCloseCode.SERVER_ERROR, "Write failed")]


class TestReads:
    @pytest.mark.asyncio
    async def test_connected_clients_snapshot(self, running_bridge):
        handles = await open_handles(running_bridge, 2)

        clients = running_bridge.get_connected_clients()
        clients.append("mutated")

        assert sorted(running_bridge.get_connected_clients()) == sorted(
            handle.metadata.client_id for handle in handles
        )

    @pytest.mark.asyncio
    async def test_status_to_dict(self, running_bridge):
        status = running_bridge.get_status().to_dict()

        assert status["isRunning"] is True
        assert status["connectedClients"] == 0
        assert status["port"] == 3001
        assert status["host"] == "127.0.0.1"
        assert status["path"] == "/ws"

    @pytest.mark.asyncio
    async def test_get_stats_includes_metrics(self, running_bridge):
        await open_handles(running_bridge, 1)

        stats = running_bridge.get_stats()

        assert stats["metrics"]["connection"]["opened"] == 1
        assert stats["isRunning"] is True
