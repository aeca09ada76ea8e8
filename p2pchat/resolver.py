#!/usr/bin/env python3
"""Everything that turns "where am I / where is my peer" into endpoints.

* Public IP lookup through an HTTP echo service (requests)
* LAN address discovery, skipping loopback (no packets sent)
* Sequential port scan for a free local UDP port
* Validation of addresses typed by the user
"""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Optional, Union

import requests

from . import __version__
from .errors import AddressInUse, InvalidEndpoint, NoAvailablePort
from .protocol import DEFAULT_BIND_HOST, PORT_RANGE, Endpoint
from .transport import DatagramTransport
from .util import LOG

PUBLIC_IP_URL = "https://api.ipify.org"
PUBLIC_IP_TIMEOUT = 10.0                  # Seconds
ROUTE_CHECK_TARGET = ("8.8.8.8", 53)      # Any internet address; never contacted


@dataclass(frozen=True)
class HostEndpoints:
    """What a host tells the other side to connect to."""

    internal: Optional[Endpoint]    # Reachable from the same LAN; None if no address was found
    public: Optional[Endpoint]      # Reachable over the internet if forwarded; None if lookup failed


# ----------------------------------------------------------------------
# address discovery
# ----------------------------------------------------------------------

def get_public_ip(url: str = PUBLIC_IP_URL, timeout: float = PUBLIC_IP_TIMEOUT) -> Optional[str]:
    """Ask an HTTP "what is my IP" service. Returns None on any failure."""
    try:
        resp = requests.get(url, timeout=timeout, headers={"User-Agent": f"p2pchat/{__version__}"})
        resp.raise_for_status()
    except requests.RequestException as exc:
        LOG.warning("Public IP lookup failed: %s", exc)
        return None

    candidate = resp.text.strip()
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        LOG.warning("Invalid IP address format received: %r", candidate[:64])
        return None


def get_internal_ip() -> Optional[str]:
    """First non-loopback IPv4 address of this machine, or None if there is none.

    Addresses registered for the host name come first. Many distributions map
    the host name to 127.0.1.1 only, so the address the routing table would use
    for outbound traffic is the fallback.
    """
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET, socket.SOCK_DGRAM)
    except OSError:
        infos = []
    for *_, sockaddr in infos:
        if not ipaddress.ip_address(sockaddr[0]).is_loopback:
            return sockaddr[0]
    return _routed_ip()


def _routed_ip() -> Optional[str]:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(ROUTE_CHECK_TARGET)    # UDP connect only selects a route
        except OSError:
            return None                           # No route: offline
        address = sock.getsockname()[0]
    ip = ipaddress.ip_address(address)
    return None if ip.is_unspecified or ip.is_loopback else address


def host_endpoints(port: int, lookup_public: bool = True) -> HostEndpoints:
    public_ip = get_public_ip() if lookup_public else None
    internal_ip = get_internal_ip()
    return HostEndpoints(
        internal=Endpoint(internal_ip, port) if internal_ip else None,
        public=Endpoint(public_ip, port) if public_ip else None,
    )


# ----------------------------------------------------------------------
# user input
# ----------------------------------------------------------------------

def parse_port(value: Union[str, int]) -> int:
    try:
        port = int(str(value).strip())
    except ValueError:
        raise InvalidEndpoint(f"Invalid port number {value!r}: expected 1-65535") from None
    if not 1 <= port <= 65535:
        raise InvalidEndpoint(f"Invalid port number {port}: expected 1-65535")
    return port


def parse_address(value: str) -> str:
    """Canonical form of an IPv4/IPv6 literal. Raises :class:`InvalidEndpoint`."""
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise InvalidEndpoint(f"Invalid IP address format: {value!r}") from None


def parse_endpoint(address: str, port: Union[str, int]) -> Endpoint:
    """Validate a typed address/port pair. Raises :class:`InvalidEndpoint`."""
    return Endpoint(parse_address(address), parse_port(port))


def parse_port_range(value: str) -> tuple[int, int]:
    """``"5000-5999"`` -> ``(5000, 5999)``; a single port is a range of one."""
    start, sep, end = value.partition("-")
    first = parse_port(start)
    last = parse_port(end) if sep else first
    if last < first:
        raise InvalidEndpoint(f"Invalid port range {value!r}: end is below start")
    return first, last


# ----------------------------------------------------------------------
# local port selection
# ----------------------------------------------------------------------

def bind_in_range(
    start: int = PORT_RANGE[0],
    end: int = PORT_RANGE[1],
    host: str = DEFAULT_BIND_HOST,
) -> DatagramTransport:
    """Bind the first free port in ``start..end`` (inclusive).

    Busy ports are skipped; any other bind error propagates as ``BindFailed``.
    """
    for port in range(start, end + 1):
        try:
            transport = DatagramTransport.bind(port, host)
        except AddressInUse:
            LOG.warning("Port %d is already in use. Trying the next port...", port)
            continue
        LOG.info("Assigned port: %d", port)
        return transport
    raise NoAvailablePort(start, end)
