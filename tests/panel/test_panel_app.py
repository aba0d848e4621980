"""Integration tests for CoopPanelApp.

These drive the panel with Textual's pilot and a fake transport, checking
that each button reaches the session machine and that the view follows it.
"""

import pytest
from textual.widgets import Button, Input, Log

from coopchat.config import CoopSettings
from coopchat.log_manager import ERRORS
from coopchat.panel import CoopPanelApp
from coopchat.protocol import MessageType
from coopchat.session import SessionStatus

# Configure pytest-anyio to handle async tests (asyncio backend only)
pytestmark = pytest.mark.anyio

SIZE = (160, 40)


def make_app(transport, server_url="ws://coop.test"):
    settings = CoopSettings(server_url=server_url, user_name="Alice", user_id="user_alice")
    return CoopPanelApp(settings=settings, transport=transport)


def static_text(app, selector):
    return app.view_text[selector]


class TestPanelLayout:

    def test_app_can_be_instantiated(self, transport):
        app = make_app(transport)
        assert app.machine.status is SessionStatus.DISCONNECTED
        assert app.backend.on_generated is not None

    async def test_app_can_mount(self, transport):
        async with make_app(transport).run_test(size=SIZE) as pilot:
            app = pilot.app
            assert app.query_one("#chat", Log) is not None
            assert app.query_one("#input", Input) is not None
            assert static_text(app, "#status").endswith("Status: disconnected")
            assert app.query_one("#connect", Button).disabled is False
            assert app.query_one("#send-to-ai", Button).disabled is True


class TestPanelActions:

    async def test_connect_without_address_logs_error(self, transport):
        async with make_app(transport, server_url="").run_test(size=SIZE) as pilot:
            app = pilot.app
            await pilot.click("#connect")
            await pilot.pause()

            assert app.machine.status is SessionStatus.DISCONNECTED
            assert transport.opened == []
            assert "Server URL is not configured" in app.log_manager.text(ERRORS)

    async def test_connect_and_join_as_host(self, transport):
        async with make_app(transport).run_test(size=SIZE) as pilot:
            app = pilot.app
            await pilot.click("#connect")
            await pilot.pause()
            assert "connecting" in static_text(app, "#status")

            transport.events.on_open()
            transport.deliver(MessageType.WELCOME, id="user_alice", isHost=True, users=[
                {"id": "user_alice", "name": "Alice"},
                {"id": "user_bob", "name": "Bob"},
            ])
            await pilot.pause()

            assert "Host" in static_text(app, "#role")
            assert "Users (2)" in static_text(app, "#users-title")
            assert "Alice (Host)" in static_text(app, "#users")
            assert app.query_one("#send-to-ai", Button).disabled is False

    async def test_host_round_through_buttons(self, transport):
        async with make_app(transport).run_test(size=SIZE) as pilot:
            app = pilot.app
            await pilot.click("#connect")
            transport.events.on_open()
            transport.deliver(MessageType.WELCOME, id="user_alice", isHost=True, users=[
                {"id": "user_alice", "name": "Alice"},
                {"id": "user_bob", "name": "Bob"},
            ])
            await pilot.pause()

            await pilot.click("#request-inputs")
            await pilot.pause()
            assert transport.link.types()[-1] == "host_input_request"

            transport.deliver(MessageType.CLIENT_INPUT, id="user_bob", name="Bob", text="hello")
            app.query_one("#input", Input).value = "world"
            await pilot.click("#submit")
            await pilot.pause()
            assert app.query_one("#input", Input).value == ""

            await pilot.click("#send-to-ai")
            for _ in range(10):
                await pilot.pause()
                if transport.link.types()[-1] == "broadcast_ai_response":
                    break

            assert transport.link.frames()[-1]["data"]["text"] == "(echo) hello\n\nworld"
            assert app.machine.status is SessionStatus.CONNECTED
            app.machine.timer.cancel()

    async def test_client_renders_broadcast(self, transport):
        async with make_app(transport).run_test(size=SIZE) as pilot:
            app = pilot.app
            await pilot.click("#connect")
            transport.events.on_open()
            transport.deliver(MessageType.WELCOME, id="user_alice", isHost=False, hostId="user_bob", users=[
                {"id": "user_bob", "name": "Bob"},
                {"id": "user_alice", "name": "Alice"},
            ])
            transport.deliver(MessageType.HOST_INPUT_REQUEST)
            await pilot.pause()
            assert "waiting" in static_text(app, "#status")

            transport.deliver(MessageType.BROADCAST_MESSAGE, text="Hi there")
            await pilot.pause()

            chat = app.query_one("#chat", Log)
            assert any("AI: Hi there" in line for line in chat.lines)
            assert static_text(app, "#status").endswith("Status: connected")

    async def test_disconnect_button(self, transport):
        async with make_app(transport).run_test(size=SIZE) as pilot:
            app = pilot.app
            await pilot.click("#connect")
            transport.events.on_open()
            await pilot.pause()

            await pilot.click("#disconnect")
            await pilot.pause()

            assert transport.link.closed
            assert app.machine.status is SessionStatus.DISCONNECTED
            assert app.query_one("#connect", Button).disabled is False
