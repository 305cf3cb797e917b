"""Docker Compose deployment path."""

from .quickstart import ACTIONS, USAGE, dispatch

__all__ = ["ACTIONS", "USAGE", "dispatch"]
