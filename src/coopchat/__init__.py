"""
Co-op chat - one shared AI conversation for a small group.

One participant hosts, the others join as clients. Every participant's turn
input is collected by the host, combined into a single prompt, sent to the
host's AI, and the response is broadcast back to everyone.
"""

from .config import CoopSettings
from .membership import MembershipRegistry, Participant, RoleError
from .protocol import Envelope, MessageType, ProtocolError
from .session import ConfigurationError, SessionMachine, SessionStatus

__all__ = [
    "ConfigurationError",
    "CoopSettings",
    "Envelope",
    "MembershipRegistry",
    "MessageType",
    "Participant",
    "ProtocolError",
    "RoleError",
    "SessionMachine",
    "SessionStatus",
]
