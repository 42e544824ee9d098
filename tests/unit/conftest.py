from typing import Dict, List, Mapping, Optional

import pytest

from vpc_nics.exceptions import ConflictError, ObjectNotFound
from vpc_nics.links import LinkSynchronizer
from vpc_nics.metadata import MetadataProvider
from vpc_nics.model import (
    FINALIZER_NAME,
    PRIVATE_NETWORK_KIND,
    PRIVATE_NETWORK_LABEL,
    API_VERSION,
    InstanceMetadata,
    NetworkInterface,
    NetworkInterfaceSpec,
    NetworkInterfaceStatus,
    ObjectMeta,
    OwnerReference,
    PrivateNetwork,
    PrivateNetworkRoute,
    PrivateNetworkSpec,
    PrivateNIC,
    Request,
)
from vpc_nics.store import ResourceStore

NODE = "node-a"
MAC = "02:00:00:00:00:01"


class FakeStore(ResourceStore):
    """In-memory store recording every write."""

    def __init__(self):
        self.nics: Dict[str, NetworkInterface] = {}
        self.networks: Dict[str, PrivateNetwork] = {}
        self.updates: List[NetworkInterface] = []
        self.status_updates: List[NetworkInterface] = []
        self.list_calls: List[Dict[str, str]] = []
        self.fail_list: Optional[Exception] = None
        self.fail_status_update: Optional[Exception] = None
        self._version = 0

    def _bump(self, nic: NetworkInterface) -> NetworkInterface:
        self._version += 1
        stored = nic.copy()
        stored.metadata.resource_version = str(self._version)
        self.nics[stored.name] = stored
        return stored.copy()

    def put_nic(self, nic: NetworkInterface) -> None:
        self._bump(nic)

    def put_network(self, network: PrivateNetwork) -> None:
        self.networks[network.name] = network

    def get_network_interface(self, request: Request) -> NetworkInterface:
        if request.name not in self.nics:
            raise ObjectNotFound(request.name)
        return self.nics[request.name].copy()

    def get_private_network(self, name: str) -> PrivateNetwork:
        if name not in self.networks:
            raise ObjectNotFound(name)
        return self.networks[name]

    def _check_version(self, nic: NetworkInterface) -> None:
        stored = self.nics.get(nic.name)
        if stored is None:
            raise ObjectNotFound(nic.name)
        if stored.metadata.resource_version != nic.metadata.resource_version:
            raise ConflictError(nic.name)

    def update_network_interface(self, nic: NetworkInterface) -> NetworkInterface:
        self._check_version(nic)
        self.updates.append(nic.copy())
        stored = self._bump(nic)
        if stored.is_terminating and not stored.metadata.finalizers:
            del self.nics[stored.name]
        return stored

    def update_network_interface_status(
        self, nic: NetworkInterface
    ) -> NetworkInterface:
        if self.fail_status_update is not None:
            raise self.fail_status_update
        self._check_version(nic)
        self.status_updates.append(nic.copy())
        return self._bump(nic)

    def list_network_interfaces(self, labels: Mapping[str, str]):
        self.list_calls.append(dict(labels))
        if self.fail_list is not None:
            raise self.fail_list
        return [
            nic.copy()
            for nic in self.nics.values()
            if all(nic.metadata.labels.get(k) == v for k, v in labels.items())
        ]


class FakeLinks(LinkSynchronizer):
    """Records calls in order; ``failures`` maps an operation to an error."""

    def __init__(self, link_names: Optional[Dict[str, str]] = None):
        self.link_names = dict(link_names or {MAC: "ens5"})
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}

    def _record(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        if op in self.failures:
            raise self.failures[op]

    def tear_down_link(self, mac_address: str, address: str) -> None:
        self._record("tear_down_link", mac_address, address)

    def get_link_name(self, mac_address: str) -> str:
        self._record("get_link_name", mac_address)
        return self.link_names[mac_address]

    def configure_link(self, mac_address: str, address: str) -> None:
        self._record("configure_link", mac_address, address)

    def sync_routes(self, mac_address: str, routes) -> None:
        self._record("sync_routes", mac_address, list(routes))


class FakeMetadata(MetadataProvider):
    def __init__(self, macs=(MAC,)):
        self.macs = list(macs)
        self.calls = 0
        self.failure: Optional[Exception] = None

    def get_metadata(self) -> InstanceMetadata:
        self.calls += 1
        if self.failure is not None:
            raise self.failure
        return InstanceMetadata(
            private_nics=tuple(PrivateNIC(mac_address=m) for m in self.macs)
        )


def build_nic(
    name: str = "nic-1",
    *,
    node_name: str = NODE,
    network: str = "pn-1",
    mac_address: str = MAC,
    link_name: str = "",
    address: str = "192.168.0.10/24",
    terminating: bool = False,
    finalizers=(FINALIZER_NAME,),
) -> NetworkInterface:
    return NetworkInterface(
        metadata=ObjectMeta(
            name=name,
            labels={PRIVATE_NETWORK_LABEL: network},
            finalizers=list(finalizers),
            owner_references=[
                OwnerReference(
                    api_version=API_VERSION, kind=PRIVATE_NETWORK_KIND, name=network
                )
            ],
            deletion_timestamp="2024-01-01T00:00:00Z" if terminating else None,
        ),
        spec=NetworkInterfaceSpec(node_name=node_name, address=address),
        status=NetworkInterfaceStatus(mac_address=mac_address, link_name=link_name),
    )


def build_network(name: str = "pn-1", routes=()) -> PrivateNetwork:
    return PrivateNetwork(
        metadata=ObjectMeta(name=name),
        spec=PrivateNetworkSpec(
            routes=[PrivateNetworkRoute(to=to, via=via) for to, via in routes]
        ),
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def links() -> FakeLinks:
    return FakeLinks()


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata()


@pytest.fixture
def nic_factory():
    return build_nic


@pytest.fixture
def network_factory():
    return build_network
