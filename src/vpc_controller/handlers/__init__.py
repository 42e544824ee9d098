"""Event handlers turning watch events into reconciliation requests."""

from .base import EventHandler  # noqa: F401
from .enqueue import EnqueueRequestForObject  # noqa: F401
from .fanout import PrivateNetworkFanout, dependent_requests  # noqa: F401

__all__ = [
    "EventHandler",
    "EnqueueRequestForObject",
    "PrivateNetworkFanout",
    "dependent_requests",
]
