"""Host-side publication of the generated response."""

from __future__ import annotations

from typing import Callable, Optional

from . import protocol
from .collaborators import Link, LogSink
from .log_manager import ERRORS, EVENTS
from .protocol import MessageType


class BroadcastRelay:
    """Sends the host's AI response to the coordination point.

    The coordination point re-emits it to every client as
    ``broadcast_message``; the host never receives its own broadcast.
    """

    def __init__(self, get_link: Callable[[], Optional[Link]], log: LogSink):
        self._get_link = get_link
        self._log = log

    def broadcast_result(self, text: str) -> bool:
        """Publish ``text``. Returns False (after logging) when no link is open."""
        link = self._get_link()
        if link is None or not link.is_open:
            self._log.add(ERRORS, "Broadcast failed: not connected.")
            return False

        frame = protocol.encode(protocol.make(MessageType.BROADCAST_AI_RESPONSE, text=text))
        if not link.send(frame):
            self._log.add(ERRORS, "Broadcast failed: connection lost.")
            return False
        self._log.add(EVENTS, "System: AI response sent to all clients.")
        return True
