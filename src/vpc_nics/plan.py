"""Pure planning helpers for the reconciliation engine.

Nothing in here talks to the store, netlink or the metadata service: every
function derives what should happen from already observed state so the
decisions can be tested without any collaborator.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .exceptions import DataError
from .model import (
    PRIVATE_NETWORK_KIND,
    InstanceMetadata,
    NetworkInterface,
    PrivateNetwork,
)

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class Phase(Enum):
    """Where a ``NetworkInterface`` stands from this node's point of view."""

    FOREIGN = auto()
    AWAITING_ADDRESS = auto()
    TERMINATING = auto()
    ACTIVE = auto()


@dataclass(frozen=True)
class Route:
    """Parsed route to program on a link; ``via`` is ``None`` for on-link."""

    to: IPNetwork
    via: Optional[IPAddress] = None

    def __str__(self) -> str:
        if self.via is None:
            return str(self.to)
        return f"{self.to} via {self.via}"


def classify(nic: NetworkInterface, node_name: str, finalizer: str) -> Phase:
    if nic.spec.node_name != node_name:
        return Phase.FOREIGN
    if not nic.status.mac_address:
        return Phase.AWAITING_ADDRESS
    if nic.is_terminating and nic.has_finalizer(finalizer):
        return Phase.TERMINATING
    return Phase.ACTIVE


def owner_network_name(nic: NetworkInterface) -> str:
    """Return the name of the ``PrivateNetwork`` owning ``nic``."""

    refs = nic.metadata.owner_references
    if not refs:
        raise DataError(f"networkinterface {nic.name} has no owner reference")
    for ref in refs:
        if ref.kind == PRIVATE_NETWORK_KIND:
            return ref.name
    if len(refs) == 1:
        return refs[0].name
    raise DataError(
        f"networkinterface {nic.name} has no {PRIVATE_NETWORK_KIND} owner"
    )


def parse_route(to: str, via: str) -> Route:
    if "/" not in to:
        raise DataError(f"invalid route destination {to!r}: not in CIDR notation")
    try:
        destination = ipaddress.ip_network(to, strict=False)
    except ValueError as exc:
        raise DataError(f"invalid route destination {to!r}: {exc}") from exc

    gateway = None
    if via:
        try:
            gateway = ipaddress.ip_address(via)
        except ValueError as exc:
            raise DataError(f"invalid route gateway {via!r}: {exc}") from exc
    return Route(to=destination, via=gateway)


def desired_routes(network: PrivateNetwork) -> List[Route]:
    """Parse every declared route; one bad entry rejects the whole set."""

    return [parse_route(r.to, r.via) for r in network.spec.routes]


def is_attached(metadata: InstanceMetadata, mac_address: str) -> bool:
    wanted = mac_address.lower()
    return any(nic.mac_address.lower() == wanted for nic in metadata.private_nics)


def diff_routes(
    current: Iterable[Route], desired: Sequence[Route]
) -> Tuple[List[Route], List[Route]]:
    """Return ``(to_add, to_remove)`` converging ``current`` onto ``desired``."""

    current_set = set(current)
    wanted = list(dict.fromkeys(desired))
    to_add = [r for r in wanted if r not in current_set]
    to_remove = sorted(
        (r for r in current_set if r not in set(wanted)),
        key=str,
    )
    return to_add, to_remove
