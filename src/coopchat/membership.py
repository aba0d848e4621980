"""Participant roster for a co-op session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


class RoleError(Exception):
    """An action or roster change that conflicts with the session's roles."""


@dataclass(frozen=True)
class Participant:
    """A member of the shared session."""

    id: str
    name: str = "unnamed"
    is_host: bool = False

    def as_client(self) -> "Participant":
        return Participant(id=self.id, name=self.name, is_host=False)


class MembershipRegistry:
    """Ordered set of connected participants, at most one of them host.

    The registry mirrors what the coordination point has confirmed: it is only
    changed in response to ``welcome``, ``user_joined`` and ``user_left``
    frames (and cleared when the link goes away).
    """

    def __init__(self) -> None:
        self._participants: Dict[str, Participant] = {}

    def add_or_ignore(self, participant: Participant) -> bool:
        """Add a participant; a duplicate id is a no-op.

        Returns:
            True if the participant was added.

        Raises:
            RoleError: the participant claims the host role while another
                participant holds it. The participant is still added, as a
                client.
        """
        if participant.id in self._participants:
            return False

        current_host = self.host
        if participant.is_host and current_host is not None:
            self._participants[participant.id] = participant.as_client()
            raise RoleError(
                f"{participant.id} cannot be host, {current_host.id} already is"
            )

        self._participants[participant.id] = participant
        return True

    def remove(self, participant_id: str) -> Optional[Participant]:
        """Remove a participant, returning it (or None if unknown)."""
        return self._participants.pop(participant_id, None)

    def replace(self, participants: Iterable[Participant]) -> List[str]:
        """Replace the whole roster (used for the ``welcome`` roster).

        Returns:
            Ids whose host claim was refused because a host was already set.
        """
        self._participants.clear()
        refused = []
        for participant in participants:
            try:
                self.add_or_ignore(participant)
            except RoleError:
                refused.append(participant.id)
        return refused

    def clear(self) -> None:
        self._participants.clear()

    def get(self, participant_id: str) -> Optional[Participant]:
        return self._participants.get(participant_id)

    def list_all(self) -> List[Participant]:
        """Participants in the order they were added."""
        return list(self._participants.values())

    @property
    def host(self) -> Optional[Participant]:
        for participant in self._participants.values():
            if participant.is_host:
                return participant
        return None

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
