"""Propagate PrivateNetwork changes to their member NetworkInterfaces.

A route change on a network has to reach every link bound to it, so an update
to ``PrivateNetwork`` *N* is expanded into one request per
``NetworkInterface`` labelled ``privateNetworkLabel=N``.  Creation and deletion
of networks are deliberately ignored: each member is reconciled through its
own watch events first.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from vpc_nics.exceptions import VPCError
from vpc_nics.model import PRIVATE_NETWORK_LABEL, PrivateNetwork, Request
from vpc_nics.store import ResourceStore

from ..workqueue import RateLimitingQueue
from .base import EventHandler

LOG = logging.getLogger(__name__)


def dependent_requests(store: ResourceStore, network_name: str) -> List[Request]:
    """Return one request per ``NetworkInterface`` member of ``network_name``."""

    nics = store.list_network_interfaces({PRIVATE_NETWORK_LABEL: network_name})
    # Identity only: namespace is empty for cluster scoped objects.
    return [Request(name=nic.metadata.name) for nic in nics]


class PrivateNetworkFanout(EventHandler):
    def __init__(self, store: ResourceStore, queue: RateLimitingQueue) -> None:
        self._store = store
        self._queue = queue

    def on_update(self, old: Optional[PrivateNetwork], new: PrivateNetwork) -> None:
        LOG.info("got update for privatenetwork %s", new.name)
        try:
            requests = dependent_requests(self._store, new.name)
        except VPCError:
            LOG.exception(
                "unable to sync nics on privatenetwork %s update", new.name
            )
            return

        for request in requests:
            LOG.info("adding event for nic %s", request.name)
            self._queue.add(request)
