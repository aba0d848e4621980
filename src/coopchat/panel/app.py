"""Textual lobby panel for a co-op session.

Thin adapter around :class:`~coopchat.session.SessionMachine`:
- buttons map 1:1 onto the machine's trigger points
- the chat pane is the renderer for broadcast responses
- a :class:`~coopchat.generation.LocalChatBackend` stands in for the host
  application's generation pipeline
"""

from __future__ import annotations

from typing import Dict, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Footer, Header, Input, Log, Static

from ..collaborators import Transport
from ..config import CoopSettings
from ..generation import Completion, LocalChatBackend, echo_completion
from ..log_manager import EVENTS, LogManager
from ..session import SessionMachine, SessionStatus
from ..transport import WebSocketTransport


STATUS_ICONS = {
    SessionStatus.DISCONNECTED: "🔌",
    SessionStatus.CONNECTING: "⏳",
    SessionStatus.CONNECTED: "🔗",
    SessionStatus.WAITING: "📝",
    SessionStatus.GENERATING: "🤖",
}


class CoopPanelApp(App):
    TITLE = "Co-op Lobby"

    CSS = """
    #body { height: 1fr; }
    #sidebar { width: 36; border-right: solid $primary; padding: 0 1; }
    #main { width: 1fr; }
    #chat { height: 1fr; border: round $secondary; }
    #event-log { height: 1fr; }
    #control, #actions { height: auto; }
    #input { width: 1fr; }
    .section-title { text-style: bold; margin-top: 1; }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        settings: Optional[CoopSettings] = None,
        completion: Optional[Completion] = None,
        transport: Optional[Transport] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.settings = settings or CoopSettings()
        self.log_manager = LogManager()
        self.backend = LocalChatBackend(completion or echo_completion)
        self.machine = SessionMachine(
            self.settings,
            transport or WebSocketTransport(),
            backend=self.backend,
            renderer=self,
            log=self.log_manager,
        )
        self.backend.on_generated = self._on_generated
        self.backend.on_failed = self.machine.on_generation_failed
        self._view_ready = False
        self.view_text: Dict[str, str] = {}

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="body"):
            with Vertical(id="sidebar"):
                yield Static("", id="status")
                yield Static("", id="role")
                yield Static("Users (0)", id="users-title", classes="section-title")
                yield Static("", id="users")
                yield Static("Log", classes="section-title")
                yield Log(id="event-log")
            with Vertical(id="main"):
                yield Log(id="chat")
                with Horizontal(id="control"):
                    yield Input(placeholder="Your message...", id="input")
                    yield Button("Submit", id="submit", variant="primary")
                with Horizontal(id="actions"):
                    yield Button("Connect", id="connect")
                    yield Button("Disconnect", id="disconnect")
                    yield Button("Request Inputs", id="request-inputs")
                    yield Button("Send to AI", id="send-to-ai")
        yield Footer()

    def on_mount(self) -> None:
        self._view_ready = True
        self.machine.set_on_change(self._on_session_change)
        self.log_manager.add(EVENTS, "System: Co-op panel loaded. Connect to a server to begin.")
        self._refresh_view()

    # -- UI events -------------------------------------------------------

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "connect":
            self.machine.connect()
        elif button_id == "disconnect":
            self.machine.disconnect()
        elif button_id == "request-inputs":
            self.machine.request_inputs()
        elif button_id == "send-to-ai":
            self.machine.send_to_ai()
        elif button_id == "submit":
            self._submit()
        self._refresh_view()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def _submit(self) -> None:
        field = self.query_one("#input", Input)
        text = field.value
        if self.machine.submit_input(text):
            self.query_one("#chat", Log).write_line(f"{self.settings.user_name}: {text}")
            field.value = ""
        self._refresh_view()

    # -- collaborators ---------------------------------------------------

    def render_assistant_message(self, text: str) -> None:
        self.query_one("#chat", Log).write_line(f"AI: {text}")

    def _on_generated(self, message_id: str) -> None:
        message = self.backend.get_last_generated_message(message_id)
        if message is not None:
            self.query_one("#chat", Log).write_line(f"AI: {message.message}")
        self.machine.on_message_generated(message_id)

    def _on_session_change(self, machine: SessionMachine) -> None:
        self._refresh_view()

    # -- view --------------------------------------------------------------

    def _refresh_view(self) -> None:
        if not self._view_ready:
            return
        machine = self.machine
        status = machine.status

        self._show("#status", f"{STATUS_ICONS[status]} Status: {status.value}")
        if status is SessionStatus.DISCONNECTED:
            role = ""
        else:
            role = "Role: Host" if machine.is_host else "Role: Client"
        self._show("#role", role)

        participants = machine.participants
        self._show("#users-title", f"Users ({len(participants)})")
        self._show("#users", "\n".join(
            f"{p.name} (Host)" if p.is_host else p.name for p in participants
        ))

        event_log = self.query_one("#event-log", Log)
        event_log.clear()
        event_log.write_lines(self.log_manager.lines(EVENTS))

        disconnected = status is SessionStatus.DISCONNECTED
        self.query_one("#connect", Button).disabled = not disconnected
        self.query_one("#disconnect", Button).disabled = disconnected
        self.query_one("#request-inputs", Button).disabled = not machine.is_host
        self.query_one("#send-to-ai", Button).disabled = not machine.is_host

    def _show(self, selector: str, text: str) -> None:
        self.view_text[selector] = text
        self.query_one(selector, Static).update(text)
