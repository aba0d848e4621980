"""
Co-op coordination point.

Handles:
- Role assignment (first participant in an empty host slot is host)
- Roster notifications (welcome, user_joined, user_left)
- Forwarding client inputs to the host
- Fanning the host's input requests and AI responses out to clients
"""

from .service import CoordinatorService, create_app

__all__ = ["CoordinatorService", "create_app"]
