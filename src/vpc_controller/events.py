"""Event primitives consumed by the handler registry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class EventType(Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class ResourceEvent:
    """A change observed on one object of a watched kind.

    ``old`` carries the last snapshot the watcher had seen for the object and
    is only populated for ``MODIFIED`` events.
    """

    kind: str
    type: EventType
    obj: Any
    old: Optional[Any] = None
