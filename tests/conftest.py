"""Shared fakes for session tests."""

import json
from typing import Callable, List, Optional

import pytest

from coopchat import protocol
from coopchat.collaborators import ChatMessage
from coopchat.config import CoopSettings
from coopchat.log_manager import LogManager
from coopchat.protocol import MessageType
from coopchat.session import SessionMachine


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeLink:
    def __init__(self):
        self.is_open = True
        self.sent: List[str] = []
        self.closed = False

    def send(self, text: str) -> bool:
        if not self.is_open:
            return False
        self.sent.append(text)
        return True

    def close(self) -> None:
        self.is_open = False
        self.closed = True

    def frames(self) -> List[dict]:
        return [json.loads(text) for text in self.sent]

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.frames()]


class FakeTransport:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.opened: List[str] = []
        self.links: List[FakeLink] = []
        self.events = None

    def open(self, address, events):
        if self.fail:
            raise ConnectionError("refused")
        self.opened.append(address)
        self.events = events
        link = FakeLink()
        self.links.append(link)
        return link

    @property
    def link(self) -> Optional[FakeLink]:
        return self.links[-1] if self.links else None

    def deliver(self, msg_type: MessageType, **fields) -> None:
        """Simulate a frame arriving from the coordination point."""
        self.events.on_message(protocol.encode(protocol.make(msg_type, **fields)))


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self):
        self.handles: List[FakeHandle] = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def fire_all(self) -> None:
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.callback()


class RecordingBackend:
    def __init__(self):
        self.prompts: List[str] = []
        self.messages = {}

    def generate(self, prompt: str) -> None:
        self.prompts.append(prompt)

    def get_last_generated_message(self, message_id: str):
        return self.messages.get(message_id)

    def reply(self, text: str, role: str = "assistant") -> str:
        message = ChatMessage(role=role, message=text)
        self.messages[message.id] = message
        return message.id


class RecordingRenderer:
    def __init__(self):
        self.rendered: List[str] = []

    def render_assistant_message(self, text: str) -> None:
        self.rendered.append(text)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def settings():
    return CoopSettings(server_url="ws://coop.test", user_name="Alice", user_id="user_alice")


@pytest.fixture
def machine(settings, transport, backend, renderer, scheduler):
    return SessionMachine(
        settings,
        transport,
        backend=backend,
        renderer=renderer,
        log=LogManager(),
        scheduler=scheduler,
    )


def welcome(transport: FakeTransport, user_id: str, is_host: bool, users: List[dict]) -> None:
    transport.deliver(MessageType.WELCOME, id=user_id, isHost=is_host, users=users)


@pytest.fixture
def host_machine(machine, transport):
    """Connected machine that the server made host, with Bob and Carol as clients."""
    machine.connect()
    transport.events.on_open()
    welcome(transport, "user_alice", True, [
        {"id": "user_alice", "name": "Alice"},
        {"id": "user_bob", "name": "Bob"},
        {"id": "user_carol", "name": "Carol"},
    ])
    return machine


@pytest.fixture
def client_machine(machine, transport):
    """Connected machine that joined as a client of Bob."""
    machine.connect()
    transport.events.on_open()
    welcome(transport, "user_alice", False, [
        {"id": "user_bob", "name": "Bob", "isHost": True},
        {"id": "user_alice", "name": "Alice"},
    ])
    return machine


@pytest.fixture
def failing_transport():
    return FakeTransport(fail=True)
