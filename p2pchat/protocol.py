#!/usr/bin/env python3
"""Shared constants, enums and value types used by every part of the chat.

Nothing here touches a socket: the transport, the loops and the CLI import
these names so that both peers agree on buffer sizes, commands and endpoints.
"""

from __future__ import annotations       # Postponed annotation evaluation (PEP 563)
import enum
import ipaddress                         # IPv4 / IPv6 literal validation
from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidEndpoint

# --- Network configuration -------------------------------------------------
BUF_SIZE: int = 1024                       # Max datagram we keep (bytes); longer ones are truncated
PORT_RANGE: Tuple[int, int] = (5000, 5999) # Ports tried in order when binding
DEFAULT_BIND_HOST: str = "0.0.0.0"         # Listen on every IPv4 interface

# --- Chat commands / fixed payloads ---------------------------------------
QUIT_COMMAND: str = "/quit"                # Typed locally to end the session
PROBE_MESSAGE: str = "Hello from client!"  # First datagram a client sends

# --- Process exit codes ----------------------------------------------------
EXIT_OK: int = 0          # Graceful shutdown (/quit, end of input, Ctrl-C)
EXIT_FAILURE: int = 1     # Startup failure (no port, bad address, probe failed)
EXIT_NO_PEER: int = 2     # Host gave up waiting for its first peer


class Role(enum.Enum):
    """Which side of the rendezvous this process plays."""

    HOST = "host"      # Binds, waits for the first datagram, answers that sender
    CLIENT = "client"  # Knows the host's address up front and probes it


class SessionState(enum.Enum):
    """Lifecycle of one chat session. Transitions only move forward."""

    RUNNING = "running"
    TERMINATING = "terminating"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class Endpoint:
    """An (address, port) pair identifying a UDP peer.

    The address is stored in canonical form, so
    ``Endpoint("::0001", 5000) == Endpoint("::1", 5000)``.
    """

    address: str
    port: int

    def __post_init__(self) -> None:
        try:
            canonical = str(ipaddress.ip_address(self.address))
        except ValueError as exc:
            raise InvalidEndpoint(f"Invalid IP address format: {self.address!r}") from exc
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise InvalidEndpoint(f"Invalid port number {self.port!r}: expected 1-65535")
        object.__setattr__(self, "address", canonical)   # Frozen: bypass __setattr__

    @classmethod
    def from_sockaddr(cls, addr: tuple) -> "Endpoint":
        """Build from what ``recvfrom`` returns (IPv6 adds flowinfo/scope_id)."""
        return cls(addr[0], addr[1])

    def as_sockaddr(self) -> Tuple[str, int]:
        return (self.address, self.port)

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True, slots=True)
class Datagram:
    """One received datagram plus where it came from."""

    sender: Endpoint     # Source address reported by the OS
    payload: bytes       # At most BUF_SIZE bytes
    truncated: bool = False  # True when the datagram was longer than BUF_SIZE

    def text(self) -> str:
        """Payload decoded as UTF-8; undecodable bytes become U+FFFD."""
        return self.payload.decode("utf-8", errors="replace")
