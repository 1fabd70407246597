"""
Tests for the ws-bridge CLI and its demo handlers.
"""

import pytest
from typer.testing import CliRunner

from ws_bridge.cli import app, build_demo_handlers

from tests.conftest import FakeHandle

runner = CliRunner()


class TestConfigCommand:
    def test_prints_resolved_config(self):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "ws://localhost:3001/ws" in result.stdout
        assert "Send timeout" in result.stdout

    def test_invalid_serve_path_exits(self, monkeypatch):
        monkeypatch.setattr("ws_bridge.cli.setup_logging", lambda: None)

        result = runner.invoke(app, ["serve", "--path", "no-slash"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestDemoHandlers:
    @pytest.mark.asyncio
    async def test_chat_gets_reply(self, running_bridge):
        running_bridge.set_handlers(build_demo_handlers(running_bridge))
        handle = FakeHandle()
        client_id = await running_bridge.handle_open(handle)

        await running_bridge.handle_message(handle, '{"type": "chat", "data": {"message": "Hello"}}')

        [reply] = handle.of_type("chat_reply")
        assert reply["clientId"] == client_id
        assert reply["data"]["reply"] == "Received: Hello"

    @pytest.mark.asyncio
    async def test_command_is_not_answered(self, running_bridge):
        running_bridge.set_handlers(build_demo_handlers(running_bridge))
        handle = FakeHandle()
        await running_bridge.handle_open(handle)
        handle.sent.clear()

        await running_bridge.handle_message(handle, '{"type": "command", "data": {"command": "status"}}')
        await running_bridge.handle_message(handle, '{"type": "chat", "data": "not an object"}')

        assert [envelope["type"] for envelope in handle.envelopes] == ["chat_reply"]
