"""Startup configuration for a co-op participant."""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field


DEFAULT_SERVER_URL = "ws://localhost:8080"
DEFAULT_QUIESCENCE_SECONDS = 5.0


def generate_user_id() -> str:
    """Random participant id, e.g. ``user_k3j9x0a``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"user_{suffix}"


@dataclass
class CoopSettings:
    """Opaque settings handed to the session at startup.

    ``server_url`` may be empty; connecting then fails with a configuration
    error instead of raising.
    """

    enabled: bool = True
    server_url: str = DEFAULT_SERVER_URL
    user_name: str = "User"
    user_id: str = field(default_factory=generate_user_id)
    quiescence_seconds: float = DEFAULT_QUIESCENCE_SECONDS
