"""Abstract interface for handlers managed by :class:`HandlerRegistry`."""

from __future__ import annotations

from abc import ABC
from typing import Any, Optional


class EventHandler(ABC):
    """Base class for event handlers; every hook defaults to a no-op."""

    def on_create(self, obj: Any) -> None:
        """React to ``obj`` being observed for the first time."""

    def on_update(self, old: Optional[Any], new: Any) -> None:
        """React to ``new`` replacing ``old``."""

    def on_delete(self, obj: Any) -> None:
        """React to ``obj`` disappearing from the store."""
