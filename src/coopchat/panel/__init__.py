"""Terminal lobby panel for co-op sessions."""

from .app import CoopPanelApp

__all__ = ["CoopPanelApp"]
