#!/usr/bin/env python3
"""Background receive loop: print what arrives, let the host adopt its peer."""

from __future__ import annotations

import sys
from typing import Callable, Set

from colorama import Fore, Style

from .errors import Cancelled, ReceiveFailed
from .protocol import Endpoint, Role
from .registry import PeerRegistry, SessionStatus
from .transport import DatagramTransport
from .util import LOG

PROMPT = "> "
STRAY_WARN_LIMIT = 16   # Distinct non-peer senders reported before going quiet

OutputFn = Callable[[Endpoint, str], None]


def format_message(sender: Endpoint, text: str) -> str:
    return f"[Message from {sender}] {text}"


def print_message(sender: Endpoint, text: str) -> None:
    """Default output: coloured line on stdout, then repaint the input prompt."""
    print(f"\r{Fore.GREEN}{format_message(sender, text)}{Style.RESET_ALL}")
    sys.stdout.write(PROMPT)
    sys.stdout.flush()


class ReceiveLoop:
    """Reads datagrams until the transport is cancelled.

    Meant to be the ``target`` of a dedicated thread. As host, the first sender
    seen becomes the peer; later senders are shown but never replace it.
    """

    def __init__(
        self,
        transport: DatagramTransport,
        role: Role,
        registry: PeerRegistry,
        status: SessionStatus,
        output: OutputFn = print_message,
    ) -> None:
        self.transport = transport
        self.role = role
        self.registry = registry
        self.status = status
        self.output = output
        self._strays: Set[Endpoint] = set()   # Non-peer senders already warned about, bounded

    def run(self) -> None:
        while self.status.running:
            try:
                datagram = self.transport.receive_from()
            except Cancelled:
                break                            # Normal shutdown path
            except ReceiveFailed as exc:
                LOG.error("%s", exc)             # Socket stays usable; keep listening
                continue

            sender = datagram.sender
            if datagram.truncated:
                LOG.warning("Datagram from %s was longer than the receive buffer; truncated", sender)

            if datagram.payload:
                self.output(sender, datagram.text())

            if self.role is Role.HOST:
                self._register(sender)

        LOG.debug("Receive loop finished")

    def _register(self, sender: Endpoint) -> None:
        if self.registry.try_set(sender):
            LOG.info("Peer connected: %s. You can now start sending messages.", sender)
            return
        peer = self.registry.get()
        if sender == peer or sender in self._strays or len(self._strays) > STRAY_WARN_LIMIT:
            return
        self._strays.add(sender)
        if len(self._strays) > STRAY_WARN_LIMIT:
            LOG.warning("More than %d other senders are contacting this host; no longer reporting them",
                        STRAY_WARN_LIMIT)
            return
        LOG.warning("Ignoring %s as a send target: already chatting with %s", sender, peer)
