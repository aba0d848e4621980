"""Interfaces between the session core and its environment.

The session machine never touches a socket, a chat window or an AI model
directly. It talks to these protocols; adapters (the WebSocket transport, the
lobby panel, the generation backends) implement them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Union, runtime_checkable
from uuid import uuid4


@runtime_checkable
class LinkEvents(Protocol):
    """Callbacks a transport delivers to the owner of a link."""

    def on_open(self) -> None: ...

    def on_message(self, raw: Union[str, bytes]) -> None: ...

    def on_close(self) -> None: ...

    def on_error(self, cause: BaseException) -> None: ...


@runtime_checkable
class Link(Protocol):
    """An open bidirectional channel to the coordination point."""

    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> bool:
        """Queue one frame. Returns False (never raises) if the link is gone."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class Transport(Protocol):
    def open(self, address: str, events: LinkEvents) -> Link:
        """Start connecting to ``address``.

        Completion is reported later through ``events.on_open``.

        Raises:
            ConnectionError: the connection could not even be attempted.
        """
        ...


@dataclass
class ChatMessage:
    """An entry in the host application's chat."""

    role: str
    message: str
    id: str = field(default_factory=lambda: f"msg_{uuid4().hex[:12]}")
    send_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class GenerationBackend(Protocol):
    """The host application's AI pipeline and chat storage."""

    def generate(self, prompt: str) -> None:
        """Submit a prompt. Completion is reported separately with the new message id."""
        ...

    def get_last_generated_message(self, message_id: str) -> Optional[ChatMessage]: ...


@runtime_checkable
class ChatRenderer(Protocol):
    def render_assistant_message(self, text: str) -> None: ...


@runtime_checkable
class LogSink(Protocol):
    def add(self, category: str, message: str) -> None: ...
