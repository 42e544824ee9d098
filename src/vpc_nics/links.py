"""Host link programming for private NICs.

Links are addressed by hardware address only: the kernel name of a private
NIC is whatever udev picked when the interface was hot-plugged, so every
operation starts with a lookup over the link table.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence

import pyroute2

from .exceptions import DataError, LinkError
from .plan import Route, diff_routes

LOG = logging.getLogger(__name__)

# From /usr/include/linux/rtnetlink.h
RTPROT_STATIC = 4
RT_TABLE_MAIN = 254
RT_SCOPE_UNIVERSE = 0


class LinkSynchronizer(ABC):
    """Imperative operations the engine needs on host links."""

    @abstractmethod
    def tear_down_link(self, mac_address: str, address: str) -> None:
        """Remove ``address`` from the link and bring it down."""

    @abstractmethod
    def get_link_name(self, mac_address: str) -> str:
        """Return the kernel name of the link owning ``mac_address``."""

    @abstractmethod
    def configure_link(self, mac_address: str, address: str) -> None:
        """Bring the link up with ``address`` as its only address."""

    @abstractmethod
    def sync_routes(self, mac_address: str, routes: Sequence[Route]) -> None:
        """Make ``routes`` the exact set of routes managed on the link."""


@dataclass(frozen=True)
class Link:
    index: int
    name: str
    mac_address: str


def _parse_interface(address: str):
    try:
        return ipaddress.ip_interface(address)
    except ValueError as exc:
        raise DataError(f"invalid link address {address!r}: {exc}") from exc


class NetlinkSynchronizer(LinkSynchronizer):
    """:class:`LinkSynchronizer` backed by ``pyroute2.IPRoute``."""

    def __init__(
        self,
        iproute_factory: Callable[[], pyroute2.IPRoute] = pyroute2.IPRoute,
        route_protocol: int = RTPROT_STATIC,
        route_table: int = RT_TABLE_MAIN,
    ) -> None:
        self._iproute_factory = iproute_factory
        self._route_protocol = route_protocol
        self._route_table = route_table

    @contextmanager
    def _iproute(self) -> Iterator[pyroute2.IPRoute]:
        try:
            with self._iproute_factory() as ipr:
                yield ipr
        except (pyroute2.NetlinkError, OSError) as exc:
            raise LinkError(f"netlink operation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _find_link(self, ipr, mac_address: str) -> Optional[Link]:
        wanted = mac_address.lower()
        for msg in ipr.get_links():
            mac = msg.get_attr("IFLA_ADDRESS")
            if mac and mac.lower() == wanted:
                return Link(
                    index=msg["index"],
                    name=msg.get_attr("IFLA_IFNAME"),
                    mac_address=wanted,
                )
        return None

    def _require_link(self, ipr, mac_address: str) -> Link:
        link = self._find_link(ipr, mac_address)
        if link is None:
            raise LinkError(f"no link with hardware address {mac_address}")
        return link

    def get_link_name(self, mac_address: str) -> str:
        with self._iproute() as ipr:
            return self._require_link(ipr, mac_address).name

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------
    def _link_addresses(self, ipr, link: Link) -> List:
        addresses = []
        for msg in ipr.get_addr(index=link.index):
            if msg.get("scope", RT_SCOPE_UNIVERSE) != RT_SCOPE_UNIVERSE:
                continue
            ip = msg.get_attr("IFA_ADDRESS")
            if not ip:
                continue
            addresses.append(ipaddress.ip_interface(f"{ip}/{msg['prefixlen']}"))
        return addresses

    def configure_link(self, mac_address: str, address: str) -> None:
        desired = _parse_interface(address)
        with self._iproute() as ipr:
            link = self._require_link(ipr, mac_address)
            ipr.link("set", index=link.index, state="up")

            current = self._link_addresses(ipr, link)
            for stale in current:
                if stale == desired or stale.version != desired.version:
                    continue
                LOG.info("Removing stale address %s from %s", stale, link.name)
                ipr.addr(
                    "del",
                    index=link.index,
                    address=str(stale.ip),
                    prefixlen=stale.network.prefixlen,
                )
            if desired not in current:
                LOG.info("Adding address %s to %s", desired, link.name)
                ipr.addr(
                    "add",
                    index=link.index,
                    address=str(desired.ip),
                    prefixlen=desired.network.prefixlen,
                )

    def tear_down_link(self, mac_address: str, address: str) -> None:
        desired = _parse_interface(address)
        with self._iproute() as ipr:
            link = self._find_link(ipr, mac_address)
            if link is None:
                LOG.info("Link %s already gone, nothing to tear down", mac_address)
                return

            if desired in self._link_addresses(ipr, link):
                LOG.info("Removing address %s from %s", desired, link.name)
                ipr.addr(
                    "del",
                    index=link.index,
                    address=str(desired.ip),
                    prefixlen=desired.network.prefixlen,
                )
            ipr.link("set", index=link.index, state="down")
            LOG.info("Link %s (%s) torn down", link.name, mac_address)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    def _managed_routes(self, ipr, link: Link) -> List[Route]:
        routes = []
        for family in (socket.AF_INET, socket.AF_INET6):
            for msg in ipr.get_routes(family=family):
                if msg.get_attr("RTA_OIF") != link.index:
                    continue
                if msg.get("proto") != self._route_protocol:
                    continue
                table = msg.get_attr("RTA_TABLE") or msg.get("table")
                if table != self._route_table:
                    continue
                dst = msg.get_attr("RTA_DST")
                if not dst:
                    dst = "0.0.0.0" if family == socket.AF_INET else "::"
                gateway = msg.get_attr("RTA_GATEWAY")
                routes.append(
                    Route(
                        to=ipaddress.ip_network(f"{dst}/{msg['dst_len']}"),
                        via=ipaddress.ip_address(gateway) if gateway else None,
                    )
                )
        return routes

    def _route_args(self, link: Link, route: Route) -> dict:
        args = {
            "dst": str(route.to),
            "oif": link.index,
            "table": self._route_table,
            "proto": self._route_protocol,
        }
        if route.via is not None:
            args["gateway"] = str(route.via)
        return args

    def sync_routes(self, mac_address: str, routes: Sequence[Route]) -> None:
        with self._iproute() as ipr:
            link = self._require_link(ipr, mac_address)
            to_add, to_remove = diff_routes(self._managed_routes(ipr, link), routes)

            for route in to_remove:
                LOG.info("Deleting route %s on %s", route, link.name)
                ipr.route("del", **self._route_args(link, route))
            for route in to_add:
                LOG.info("Adding route %s on %s", route, link.name)
                ipr.route("add", **self._route_args(link, route))

            if not to_add and not to_remove:
                LOG.debug("Routes on %s already converged", link.name)
