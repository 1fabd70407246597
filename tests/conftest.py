"""
Pytest configuration and fixtures for bridge tests.

The bridge only talks to handles and transports, so most tests run against
in-memory fakes instead of a real socket.
"""

import json

import pytest
import pytest_asyncio

from ws_bridge.bridge import BridgeConfig, WebSocketBridge
from ws_bridge.components.connection.handle import ConnectionMetadata, ReadyState


class FakeHandle:
    """
    In-memory ConnectionHandle.

    Records every sent frame and every close call. Set fail_send to make
    writes raise, or ready_state to simulate a closing connection.
    """

    def __init__(self, fail_send: Exception | None = None) -> None:
        self.metadata: ConnectionMetadata | None = None
        self.ready_state = ReadyState.OPEN
        self.fail_send = fail_send
        self.sent: list[str] = []
        self.closes: list[tuple[int, str]] = []

    async def send(self, text: str) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(text)

    async def close(self, code: int, reason: str) -> None:
        self.closes.append((code, reason))
        self.ready_state = ReadyState.CLOSED

    @property
    def envelopes(self) -> list[dict]:
        return [json.loads(text) for text in self.sent]

    def of_type(self, message_type: str) -> list[dict]:
        return [envelope for envelope in self.envelopes if envelope["type"] == message_type]


class FakeTransport:
    """Transport that binds nothing. start_error makes start() raise it."""

    def __init__(self, start_error: Exception | None = None) -> None:
        self.start_error = start_error
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def config():
    """Bridge config that never touches the environment defaults."""
    return BridgeConfig(host="127.0.0.1", port=3001, path="/ws")


@pytest.fixture
def transports():
    """Every FakeTransport built by the bridge fixture, in start order."""
    return []


@pytest.fixture
def bridge(config, transports):
    """A stopped bridge wired to FakeTransport."""

    def factory(_bridge):
        transport = FakeTransport()
        transports.append(transport)
        return transport

    return WebSocketBridge(config, transport_factory=factory, send_timeout=0.5, close_timeout=0.5)


@pytest_asyncio.fixture
async def running_bridge(bridge):
    """A started bridge, stopped after the test."""
    await bridge.start()
    yield bridge
    await bridge.stop()


@pytest.fixture
def make_handle():
    """Factory for FakeHandle instances."""
    return FakeHandle
