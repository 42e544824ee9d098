"""Handler registry dispatching watch events by resource kind."""

from __future__ import annotations

import logging
from typing import Dict

from .events import EventType, ResourceEvent
from .handlers import EventHandler

LOG = logging.getLogger(__name__)


class HandlerRegistry:
    """Dispatch resource events to the handlers registered for their kind."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Dict[str, EventHandler]] = {}

    def register(self, kind: str, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(kind, {})
        if name in handlers:
            raise ValueError(f"handler '{name}' already registered for {kind}")
        handlers[name] = handler

    def unregister(self, kind: str, name: str) -> None:
        self._handlers.get(kind, {}).pop(name, None)

    def kinds(self):
        return [kind for kind, handlers in self._handlers.items() if handlers]

    def handle(self, event: ResourceEvent) -> None:
        handlers = self._handlers.get(event.kind)
        if not handlers:
            LOG.debug("No handler registered for %s events", event.kind)
            return

        for handler in handlers.values():
            if event.type is EventType.ADDED:
                handler.on_create(event.obj)
            elif event.type is EventType.MODIFIED:
                handler.on_update(event.old, event.obj)
            elif event.type is EventType.DELETED:
                handler.on_delete(event.obj)
            else:
                raise TypeError(f"Unsupported event type: {event.type!r}")
