# lease_agent/network/link.py
"""
Link Configurator
Applies addresses, routes and link state to a single named device
"""

import abc
import ipaddress
import logging
import socket
from typing import Union

from pyroute2.netlink.exceptions import NetlinkError

from ..errors import LinkStateError, ParseError

logger = logging.getLogger('wg-agent.link')

IPInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_ip_net(value: str) -> IPInterface:
    """
    Parse "addr/prefix" keeping host bits, e.g. "10.0.0.5/24".
    The prefix is mandatory.
    """
    if not isinstance(value, str) or "/" not in value:
        raise ParseError(f"Cannot parse ip net {value!r}: missing prefix length", operation="parse ip net")
    try:
        return ipaddress.ip_interface(value)
    except (ValueError, TypeError) as e:
        raise ParseError(f"Cannot parse ip net {value!r}: {e}", operation="parse ip net") from e


def parse_route_dst(value: str) -> IPNetwork:
    """Parse a route destination; host bits are masked off"""
    return parse_ip_net(value).network


def _family(ip: Union[IPInterface, IPNetwork]) -> int:
    return socket.AF_INET6 if ip.version == 6 else socket.AF_INET


class LinkConfigurator(abc.ABC):
    """Kernel network state for one device at a time"""

    @abc.abstractmethod
    def ensure_link_up(self, device: str) -> None:
        """Set the device administratively up; idempotent"""

    @abc.abstractmethod
    def add_address(self, device: str, ip_net: str) -> None:
        """Assign addr/prefix to the device"""

    @abc.abstractmethod
    def add_route(self, device: str, dest_net: str) -> None:
        """Route dest_net via the device"""


class PyRoute2LinkConfigurator(LinkConfigurator):
    """LinkConfigurator on top of pyroute2 IPRoute"""

    def __init__(self, ipr=None):
        # Lazy: opening a netlink socket needs privileges
        self._ipr = ipr

    def _get_ipr(self):
        if self._ipr is None:
            from pyroute2 import IPRoute

            self._ipr = IPRoute()
        return self._ipr

    def close(self) -> None:
        if self._ipr is not None:
            self._ipr.close()
            self._ipr = None

    def _index(self, device: str, operation: str) -> int:
        try:
            indexes = self._get_ipr().link_lookup(ifname=device)
        except NetlinkError as e:
            raise LinkStateError(str(e), device=device, operation=operation) from e
        if not indexes:
            raise LinkStateError("no such device", device=device, operation=operation)
        return indexes[0]

    def ensure_link_up(self, device: str) -> None:
        idx = self._index(device, "link up")
        try:
            self._get_ipr().link("set", index=idx, state="up")
        except NetlinkError as e:
            raise LinkStateError(str(e), device=device, operation="link up") from e
        logger.info(f"Link {device} is up")

    def add_address(self, device: str, ip_net: str) -> None:
        iface = parse_ip_net(ip_net)
        idx = self._index(device, "add address")
        logger.info(f"Configuring offered ip: {iface} on dev: {device}")
        try:
            # replace: re-applying the same lease is a no-op
            self._get_ipr().addr(
                "replace",
                index=idx,
                address=str(iface.ip),
                prefixlen=iface.network.prefixlen,
                family=_family(iface)
            )
        except NetlinkError as e:
            raise LinkStateError(
                f"cannot add address {iface}: {e}", device=device, operation="add address"
            ) from e

    def add_route(self, device: str, dest_net: str) -> None:
        dst = parse_route_dst(dest_net)
        idx = self._index(device, "add route")
        logger.info(f"Adding route: {dst} on dev {device}")
        try:
            self._get_ipr().route(
                "replace",
                dst=str(dst),
                oif=idx,
                family=_family(dst)
            )
        except NetlinkError as e:
            raise LinkStateError(
                f"error adding route {dst} via {device}: {e}", device=device, operation="add route"
            ) from e
