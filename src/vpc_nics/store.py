"""Resource store contract consumed by the engine and the fan-out."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from .model import NetworkInterface, PrivateNetwork, Request


class ResourceStore(ABC):
    """Typed access to ``NetworkInterface`` and ``PrivateNetwork`` objects.

    Implementations raise :class:`~vpc_nics.exceptions.ObjectNotFound` for
    missing objects, :class:`~vpc_nics.exceptions.ConflictError` when an
    update carries a stale ``resourceVersion`` and
    :class:`~vpc_nics.exceptions.StoreError` for anything else.
    """

    @abstractmethod
    def get_network_interface(self, request: Request) -> NetworkInterface:
        ...

    @abstractmethod
    def get_private_network(self, name: str) -> PrivateNetwork:
        ...

    @abstractmethod
    def update_network_interface(self, nic: NetworkInterface) -> NetworkInterface:
        """Persist metadata/spec changes and return the stored object."""

    @abstractmethod
    def update_network_interface_status(
        self, nic: NetworkInterface
    ) -> NetworkInterface:
        """Persist the status subresource and return the stored object."""

    @abstractmethod
    def list_network_interfaces(
        self, labels: Mapping[str, str]
    ) -> Sequence[NetworkInterface]:
        """Return every ``NetworkInterface`` carrying all ``labels``."""
