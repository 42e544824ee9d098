"""Resource objects handled by the node agent.

``NetworkInterface`` and ``PrivateNetwork`` are cluster scoped custom
resources served under ``vpc.scaleway.com/v1alpha1``.  The dataclasses below
mirror the JSON documents exchanged with the API server closely enough for
the controller's needs: the engine reads ``spec``, writes ``status`` and the
finalizer list, and relies on ``resourceVersion`` being carried back on every
update so writes stay optimistic.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

GROUP = "vpc.scaleway.com"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{VERSION}"

NETWORK_INTERFACE_KIND = "NetworkInterface"
NETWORK_INTERFACE_PLURAL = "networkinterfaces"
PRIVATE_NETWORK_KIND = "PrivateNetwork"
PRIVATE_NETWORK_PLURAL = "privatenetworks"

FINALIZER_NAME = "vpc.scaleway.com/finalizer"
PRIVATE_NETWORK_LABEL = "vpc.scaleway.com/private-network"


@dataclass(frozen=True)
class Request:
    """Identity of a ``NetworkInterface`` to reconcile.

    Both kinds are cluster scoped, so ``namespace`` is empty by convention.
    """

    name: str
    namespace: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


@dataclass(frozen=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnerReference":
        return cls(
            api_version=str(data.get("apiVersion", "")),
            kind=str(data.get("kind", "")),
            name=str(data.get("name", "")),
            uid=str(data.get("uid", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }


@dataclass
class ObjectMeta:
    name: str
    namespace: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    finalizers: List[str] = field(default_factory=list)
    owner_references: List[OwnerReference] = field(default_factory=list)
    deletion_timestamp: Optional[str] = None
    resource_version: Optional[str] = None
    uid: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectMeta":
        return cls(
            name=str(data["name"]),
            namespace=str(data.get("namespace") or ""),
            labels=dict(data.get("labels") or {}),
            finalizers=list(data.get("finalizers") or []),
            owner_references=[
                OwnerReference.from_dict(ref)
                for ref in data.get("ownerReferences") or []
            ],
            deletion_timestamp=data.get("deletionTimestamp"),
            resource_version=data.get("resourceVersion"),
            uid=str(data.get("uid") or ""),
        )

    def to_dict(self, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Render metadata, merged over ``base`` so untracked keys survive."""

        data: Dict[str, Any] = copy.deepcopy(base) if base else {}
        data["name"] = self.name
        managed = {
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "finalizers": list(self.finalizers),
            "ownerReferences": [ref.to_dict() for ref in self.owner_references],
            "deletionTimestamp": self.deletion_timestamp,
            "resourceVersion": self.resource_version,
            "uid": self.uid,
        }
        for key, value in managed.items():
            if value:
                data[key] = value
            else:
                data.pop(key, None)
        return data


@dataclass
class NetworkInterfaceSpec:
    node_name: str
    address: str


@dataclass
class NetworkInterfaceStatus:
    mac_address: str = ""
    link_name: str = ""


@dataclass
class NetworkInterface:
    """Binding of one virtual NIC to one node.

    ``raw`` keeps the document the object was parsed from; :meth:`to_dict`
    renders on top of it so a full replace does not drop annotations or
    other fields the agent does not track.
    """

    metadata: ObjectMeta
    spec: NetworkInterfaceSpec
    status: NetworkInterfaceStatus = field(default_factory=NetworkInterfaceStatus)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def request(self) -> Request:
        return Request(name=self.metadata.name, namespace=self.metadata.namespace)

    @property
    def is_terminating(self) -> bool:
        return bool(self.metadata.deletion_timestamp)

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.metadata.finalizers

    def remove_finalizer(self, finalizer: str) -> None:
        self.metadata.finalizers = [
            f for f in self.metadata.finalizers if f != finalizer
        ]

    def copy(self) -> "NetworkInterface":
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkInterface":
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata") or {}),
            spec=NetworkInterfaceSpec(
                node_name=str(spec.get("nodeName", "")),
                address=str(spec.get("address", "")),
            ),
            status=NetworkInterfaceStatus(
                mac_address=str(status.get("macAddress") or ""),
                link_name=str(status.get("linkName") or ""),
            ),
            raw=copy.deepcopy(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.raw)
        data["apiVersion"] = API_VERSION
        data["kind"] = NETWORK_INTERFACE_KIND
        data["metadata"] = self.metadata.to_dict(self.raw.get("metadata"))

        spec = dict(data.get("spec") or {})
        spec["nodeName"] = self.spec.node_name
        spec["address"] = self.spec.address
        data["spec"] = spec

        status = dict(data.get("status") or {})
        for key, value in (
            ("macAddress", self.status.mac_address),
            ("linkName", self.status.link_name),
        ):
            if value:
                status[key] = value
            else:
                status.pop(key, None)
        data["status"] = status
        return data


@dataclass(frozen=True)
class PrivateNetworkRoute:
    """A route as declared on the network: both fields are plain strings."""

    to: str
    via: str = ""


@dataclass
class PrivateNetworkSpec:
    id: str = ""
    routes: Sequence[PrivateNetworkRoute] = field(default_factory=list)


@dataclass
class PrivateNetwork:
    """Logical network owning a set of ``NetworkInterface`` objects."""

    metadata: ObjectMeta
    spec: PrivateNetworkSpec = field(default_factory=PrivateNetworkSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrivateNetwork":
        spec = data.get("spec") or {}
        routes = [
            PrivateNetworkRoute(to=str(r.get("to", "")), via=str(r.get("via") or ""))
            for r in spec.get("routes") or []
        ]
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata") or {}),
            spec=PrivateNetworkSpec(id=str(spec.get("id") or ""), routes=routes),
        )


@dataclass(frozen=True)
class PrivateNIC:
    """A virtual interface attached to the instance, as seen by metadata."""

    mac_address: str


@dataclass(frozen=True)
class InstanceMetadata:
    private_nics: Sequence[PrivateNIC] = ()
