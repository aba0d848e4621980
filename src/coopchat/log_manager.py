from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List


EVENTS = "events"
ERRORS = "errors"
DEBUG = "debug"


@dataclass
class LogManager:
    """Line-buffered session log by category.

    Categories: events (user-visible, newest first), errors, debug
    """

    max_lines: int = 2000
    max_events: int = 100
    buffers: Dict[str, Deque[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.buffers[EVENTS] = deque(maxlen=self.max_events)
        for name in (ERRORS, DEBUG):
            self.buffers[name] = deque(maxlen=self.max_lines)

    def add(self, category: str, message: str) -> None:
        buf = self.buffers.setdefault(category, deque(maxlen=self.max_lines))
        lines = message.splitlines() or [message]
        if category == EVENTS:
            # newest entry first, like a chat log panel
            for line in reversed(lines):
                buf.appendleft(line)
        else:
            for line in lines:
                buf.append(line)

    def lines(self, category: str) -> List[str]:
        return list(self.buffers.get(category, ()))

    def text(self, category: str) -> str:
        buf = self.buffers.get(category)
        if not buf:
            return ""
        return "\n".join(buf)
