"""NetworkInterface reconciliation engine.

Each pass is level-triggered: the engine fetches the current object, works
out where it stands (:func:`~vpc_nics.plan.classify`) and replays every step
that applies, in order.  Steps are idempotent on the host side, so a pass
interrupted anywhere is simply redone from the top by the next request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .exceptions import DataError, ObjectNotFound
from .links import LinkSynchronizer
from .metadata import MetadataProvider
from .model import FINALIZER_NAME, NetworkInterface, Request
from .plan import Phase, classify, desired_routes, is_attached, owner_network_name
from .store import ResourceStore

LOG = logging.getLogger(__name__)

DEFAULT_AWAIT_ADDRESS_DELAY = 1.0


@dataclass(frozen=True)
class Result:
    """Outcome of a successful pass.

    ``requeue_after`` is an expected wait and bypasses backoff; ``requeue``
    asks for a rate limited retry.
    """

    requeue: bool = False
    requeue_after: float = 0.0


class NetworkInterfaceReconciler:
    """Drive host links towards the declared ``NetworkInterface`` state."""

    def __init__(
        self,
        store: ResourceStore,
        links: LinkSynchronizer,
        metadata: MetadataProvider,
        node_name: str,
        *,
        finalizer: str = FINALIZER_NAME,
        await_address_delay: float = DEFAULT_AWAIT_ADDRESS_DELAY,
        stop_after_teardown: bool = False,
    ) -> None:
        if not node_name:
            raise ValueError("node_name must not be empty")
        self._store = store
        self._links = links
        self._metadata = metadata
        self._node_name = node_name
        self._finalizer = finalizer
        self._await_address_delay = await_address_delay
        self._stop_after_teardown = stop_after_teardown

    def reconcile(self, request: Request) -> Result:
        try:
            nic = self._store.get_network_interface(request)
        except ObjectNotFound:
            LOG.debug("networkinterface %s not found, nothing to do", request)
            return Result()

        phase = classify(nic, self._node_name, self._finalizer)
        if phase is Phase.FOREIGN:
            return Result()
        if phase is Phase.AWAITING_ADDRESS:
            LOG.debug("networkinterface %s has no mac address yet", request)
            return Result(requeue_after=self._await_address_delay)

        if phase is Phase.TERMINATING:
            self._tear_down(nic)
            if self._stop_after_teardown:
                return Result()
            try:
                nic = self._store.get_network_interface(nic.request)
            except ObjectNotFound:
                LOG.debug("networkinterface %s deleted after teardown", request)
                return Result()

        self._verify_attached(nic)
        nic = self._resolve_link_name(nic)
        if nic.is_terminating:
            LOG.debug(
                "networkinterface %s is terminating, leaving host link down", request
            )
            return Result()
        self._links.configure_link(nic.status.mac_address, nic.spec.address)
        self._sync_routes(nic)
        return Result()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _tear_down(self, nic: NetworkInterface) -> None:
        self._links.tear_down_link(nic.status.mac_address, nic.spec.address)
        LOG.info("Tore down link for networkinterface %s", nic.name)

        updated = nic.copy()
        updated.remove_finalizer(self._finalizer)
        self._store.update_network_interface(updated)

    def _verify_attached(self, nic: NetworkInterface) -> None:
        metadata = self._metadata.get_metadata()
        if not is_attached(metadata, nic.status.mac_address):
            raise DataError(
                f"nic not found on node: networkinterface {nic.name} "
                f"({nic.status.mac_address}) is not attached to {self._node_name}"
            )

    def _resolve_link_name(self, nic: NetworkInterface) -> NetworkInterface:
        link_name = self._links.get_link_name(nic.status.mac_address)
        if nic.status.link_name == link_name:
            return nic

        updated = nic.copy()
        updated.status.link_name = link_name
        LOG.info("networkinterface %s bound to link %s", nic.name, link_name)
        return self._store.update_network_interface_status(updated)

    def _sync_routes(self, nic: NetworkInterface) -> None:
        network = self._store.get_private_network(owner_network_name(nic))
        routes = desired_routes(network)
        LOG.debug(
            "Syncing %d routes from privatenetwork %s on networkinterface %s",
            len(routes),
            network.name,
            nic.name,
        )
        self._links.sync_routes(nic.status.mac_address, routes)
