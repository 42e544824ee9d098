"""Enqueue the identity of the object an event is about."""

from __future__ import annotations

import logging
from typing import Any, Optional

from vpc_nics.model import Request

from ..workqueue import RateLimitingQueue
from .base import EventHandler

LOG = logging.getLogger(__name__)


class EnqueueRequestForObject(EventHandler):
    def __init__(self, queue: RateLimitingQueue) -> None:
        self._queue = queue

    def _enqueue(self, obj: Any) -> None:
        request = Request(name=obj.metadata.name, namespace=obj.metadata.namespace)
        LOG.debug("Enqueueing %s", request)
        self._queue.add(request)

    def on_create(self, obj: Any) -> None:
        self._enqueue(obj)

    def on_update(self, old: Optional[Any], new: Any) -> None:
        self._enqueue(new)

    def on_delete(self, obj: Any) -> None:
        self._enqueue(obj)
