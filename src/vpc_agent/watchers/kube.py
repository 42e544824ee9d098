"""Kubernetes list/watch loop publishing resource events."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Event, Thread
from typing import Any, Callable, Dict, Optional

from kubernetes import watch
from kubernetes.client.rest import ApiException

from vpc_controller import EventType, HandlerRegistry, ResourceEvent
from vpc_nics.model import (
    GROUP,
    NETWORK_INTERFACE_KIND,
    NETWORK_INTERFACE_PLURAL,
    PRIVATE_NETWORK_KIND,
    PRIVATE_NETWORK_PLURAL,
    VERSION,
    NetworkInterface,
    PrivateNetwork,
)

LOG = logging.getLogger(__name__)

HTTP_GONE = 410


@dataclass(frozen=True)
class WatchedKind:
    kind: str
    plural: str
    parse: Callable[[dict], Any]


NETWORK_INTERFACES = WatchedKind(
    NETWORK_INTERFACE_KIND, NETWORK_INTERFACE_PLURAL, NetworkInterface.from_dict
)
PRIVATE_NETWORKS = WatchedKind(
    PRIVATE_NETWORK_KIND, PRIVATE_NETWORK_PLURAL, PrivateNetwork.from_dict
)


class ResourceWatcher(Thread):
    """List and watch one custom resource kind, publishing changes.

    The watcher keeps the last snapshot of every object so that ``MODIFIED``
    events carry the previous state.  A periodic :meth:`resync` re-publishes
    every known object as modified, which also re-triggers any fan-out that
    was dropped earlier.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        api,
        kind: WatchedKind,
        *,
        stop_event: Event,
        resync_period: float = 300.0,
        watch_timeout: int = 300,
        retry_interval: float = 5.0,
        watch_factory: Callable[[], watch.Watch] = watch.Watch,
    ) -> None:
        super().__init__(daemon=True, name=f"{kind.plural}-watcher")
        self._registry = registry
        self._api = api
        self._kind = kind
        self._stop_event = stop_event
        self._resync_period = resync_period
        self._watch_timeout = watch_timeout
        self._retry_interval = retry_interval
        self._watch_factory = watch_factory
        self._state: Dict[str, Any] = {}
        self._resource_version: Optional[str] = None
        self._last_resync: Optional[float] = None

    def run(self) -> None:
        LOG.info("Starting %s watcher", self._kind.kind)
        while not self._stop_event.is_set():
            try:
                if self._resync_due():
                    self.resync()
                self.watch_once()
            except Exception:
                LOG.exception("%s watcher encountered an error", self._kind.kind)
                self._resource_version = None
                self._stop_event.wait(self._retry_interval)
        LOG.info("Stopped %s watcher", self._kind.kind)

    def _resync_due(self) -> bool:
        if self._resource_version is None or self._last_resync is None:
            return True
        return time.monotonic() - self._last_resync >= self._resync_period

    def _publish(self, event_type: EventType, obj: Any, old: Any = None) -> None:
        event = ResourceEvent(kind=self._kind.kind, type=event_type, obj=obj, old=old)
        try:
            self._registry.handle(event)
        except Exception:
            LOG.exception(
                "handler failed for %s %s %s",
                event_type.value,
                self._kind.kind,
                obj.metadata.name,
            )

    def resync(self) -> None:
        data = self._api.list_cluster_custom_object(GROUP, VERSION, self._kind.plural)
        desired = {}
        for item in data.get("items", []):
            obj = self._kind.parse(item)
            desired[obj.metadata.name] = obj

        for name, obj in desired.items():
            previous = self._state.get(name)
            if previous is None:
                self._publish(EventType.ADDED, obj)
            else:
                self._publish(EventType.MODIFIED, obj, previous)

        for name in set(self._state) - set(desired):
            LOG.debug("%s %s removed while not watching", self._kind.kind, name)
            self._publish(EventType.DELETED, self._state[name])

        self._state = desired
        self._resource_version = (data.get("metadata") or {}).get("resourceVersion")
        self._last_resync = time.monotonic()
        LOG.debug("Resynced %d %s objects", len(desired), self._kind.kind)

    def watch_once(self) -> None:
        timeout = max(1, int(min(self._watch_timeout, self._resync_period)))
        w = self._watch_factory()
        try:
            for raw in w.stream(
                self._api.list_cluster_custom_object,
                GROUP,
                VERSION,
                self._kind.plural,
                resource_version=self._resource_version,
                timeout_seconds=timeout,
            ):
                if self._stop_event.is_set() or not self.apply(raw):
                    w.stop()
                    break
        except ApiException as exc:
            if exc.status != HTTP_GONE:
                raise
            LOG.info("%s watch expired, relisting", self._kind.kind)
            self._resource_version = None

    def apply(self, raw: dict) -> bool:
        """Apply one watch event; return ``False`` if a relist is required."""

        event_type = raw.get("type")
        payload = raw.get("object") or {}

        if event_type == "ERROR":
            if payload.get("code") == HTTP_GONE:
                LOG.info("%s watch expired, relisting", self._kind.kind)
            else:
                LOG.warning("%s watch error: %s", self._kind.kind, payload)
            self._resource_version = None
            return False

        version = (payload.get("metadata") or {}).get("resourceVersion")
        if version:
            self._resource_version = version
        if event_type == "BOOKMARK":
            return True

        obj = self._kind.parse(payload)
        name = obj.metadata.name
        if event_type in ("ADDED", "MODIFIED"):
            previous = self._state.get(name)
            self._state[name] = obj
            if previous is None:
                self._publish(EventType.ADDED, obj)
            else:
                self._publish(EventType.MODIFIED, obj, previous)
        elif event_type == "DELETED":
            self._state.pop(name, None)
            self._publish(EventType.DELETED, obj)
        else:
            LOG.debug("Ignoring %s watch event of type %s", self._kind.kind, event_type)
        return True
