"""Host-side input aggregation.

The host collects one input per participant for the current round and turns
them into a single prompt. A round ends either when the host presses
"send to AI" or when the quiescence timer started by the host's own input
runs out, whichever happens first.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Protocol


SEPARATOR = "\n\n"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Schedule ``callback`` on the running asyncio loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


class InputAggregator:
    """Pending input set for one host.

    Entries keep the position of their first submission in the round; a
    second submission from the same participant replaces the text only.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, str] = {}

    def submit(self, participant_id: str, text: str) -> None:
        self._pending[participant_id] = text

    def discard(self, participant_id: str) -> bool:
        """Drop a participant's entry (e.g. they left). Returns True if one existed."""
        return self._pending.pop(participant_id, None) is not None

    def combine(self) -> Optional[str]:
        """Drain the set into one prompt, or return None if nothing is pending."""
        if not self._pending:
            return None
        combined = SEPARATOR.join(self._pending.values())
        self._pending = {}
        return combined

    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)


class QuiescenceTimer:
    """Single deferred trigger for the end of a round.

    ``arm`` is a no-op while a trigger is already pending, so one round never
    produces two callbacks. ``cancel`` is safe to call at any time.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        scheduler: Optional[Scheduler] = None,
    ):
        self.interval = interval
        self._callback = callback
        self._scheduler = scheduler or loop_scheduler
        self._handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> bool:
        """Start the countdown. Returns False if it was already running."""
        if self._handle is not None:
            return False
        self._handle = self._scheduler(self.interval, self._fire)
        return True

    def cancel(self) -> bool:
        """Stop a pending countdown. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        if self._handle is None:
            return
        self._handle = None
        self._callback()
