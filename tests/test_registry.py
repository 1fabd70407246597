"""
Tests for ConnectionRegistry.

Tests verify:
- Fresh, unique client ids under concurrent registration
- Idempotent removal
- is_open requires registration AND an open handle
- Snapshots are unaffected by later mutation
"""

import re
from concurrent.futures import ThreadPoolExecutor

from ws_bridge.components.connection.handle import ReadyState, get_client_id, is_handle_open
from ws_bridge.components.connection.registry import ConnectionRegistry

from tests.conftest import FakeHandle


class TestRegister:
    def test_register_assigns_id_and_metadata(self):
        registry = ConnectionRegistry()
        handle = FakeHandle()

        client_id = registry.register(handle)

        assert re.fullmatch(r"client_1_[0-9a-f]{8}", client_id)
        assert get_client_id(handle) == client_id
        assert handle.metadata.connected_at > 0
        assert handle.metadata.disconnect_notified is False
        assert registry.get(client_id) is handle
        assert client_id in registry
        assert len(registry) == 1

    def test_concurrent_registrations_get_distinct_ids(self):
        registry = ConnectionRegistry()
        handles = [FakeHandle() for _ in range(200)]

        with ThreadPoolExecutor(max_workers=16) as pool:
            ids = list(pool.map(registry.register, handles))

        assert len(set(ids)) == 200
        assert registry.size() == 200
        assert sorted(registry.client_ids()) == sorted(ids)

    def test_ids_are_not_reused_after_clear(self):
        registry = ConnectionRegistry()
        first = registry.register(FakeHandle())
        registry.clear()

        second = registry.register(FakeHandle())

        assert second != first
        assert second.startswith("client_2_")


class TestRemove:
    def test_remove_is_idempotent(self):
        registry = ConnectionRegistry()
        client_id = registry.register(FakeHandle())

        assert registry.remove(client_id) is True
        assert registry.remove(client_id) is False
        assert registry.size() == 0

    def test_remove_unknown_id_is_noop(self):
        registry = ConnectionRegistry()
        registry.register(FakeHandle())

        assert registry.remove("client_999_deadbeef") is False
        assert registry.size() == 1

    def test_clear_returns_records(self):
        registry = ConnectionRegistry()
        handles = [FakeHandle() for _ in range(3)]
        ids = [registry.register(handle) for handle in handles]

        records = registry.clear()

        assert [record.client_id for record in records] == ids
        assert [record.handle for record in records] == handles
        assert registry.size() == 0


class TestIsOpen:
    def test_open_handle(self):
        registry = ConnectionRegistry()
        client_id = registry.register(FakeHandle())

        assert registry.is_open(client_id) is True

    def test_closing_handle_is_not_open(self):
        registry = ConnectionRegistry()
        handle = FakeHandle()
        client_id = registry.register(handle)
        handle.ready_state = ReadyState.CLOSING

        assert registry.is_open(client_id) is False

    def test_unknown_id_is_not_open(self):
        assert ConnectionRegistry().is_open("nope") is False

    def test_handle_raising_on_state_is_not_open(self):
        class BrokenHandle(FakeHandle):
            @property
            def ready_state(self):
                raise RuntimeError("transport gone")

            @ready_state.setter
            def ready_state(self, value):
                pass

        handle = BrokenHandle()
        registry = ConnectionRegistry()
        client_id = registry.register(handle)

        assert registry.is_open(client_id) is False
        assert is_handle_open(handle) is False


class TestSnapshot:
    def test_all_is_a_snapshot(self):
        registry = ConnectionRegistry()
        first = registry.register(FakeHandle())
        snapshot = registry.all()

        registry.register(FakeHandle())
        registry.remove(first)

        assert [client_id for client_id, _ in snapshot] == [first]
        assert registry.size() == 1

    def test_get_record(self):
        registry = ConnectionRegistry()
        handle = FakeHandle()
        client_id = registry.register(handle)

        record = registry.get_record(client_id)

        assert record.client_id == client_id
        assert record.handle is handle
        assert record.connected_at == handle.metadata.connected_at
        assert registry.get_record("missing") is None
