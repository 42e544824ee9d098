"""Controller plumbing for the node agent.

Watch events are published into a :class:`HandlerRegistry`, whose handlers
translate them into reconciliation requests on a :class:`RateLimitingQueue`;
a :class:`Controller` worker pool drains the queue into the reconciler.
"""

from .controller import Controller  # noqa: F401
from .events import EventType, ResourceEvent  # noqa: F401
from .registry import HandlerRegistry  # noqa: F401
from .workqueue import ExponentialBackoff, RateLimitingQueue  # noqa: F401

__all__ = [
    "Controller",
    "EventType",
    "ExponentialBackoff",
    "HandlerRegistry",
    "RateLimitingQueue",
    "ResourceEvent",
]
