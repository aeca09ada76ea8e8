#!/usr/bin/env python3
"""Foreground send loop: forward typed lines to the peer until /quit or EOF."""

from __future__ import annotations

from typing import Iterable, Optional

from .errors import Cancelled, PeerTimeout, SendFailed
from .protocol import BUF_SIZE, QUIT_COMMAND, Endpoint, Role
from .registry import PeerRegistry, SessionStatus
from .transport import DatagramTransport
from .util import LOG


class SendLoop:
    def __init__(
        self,
        transport: DatagramTransport,
        role: Role,
        registry: PeerRegistry,
        status: SessionStatus,
        lines: Iterable[str],
        peer_timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.role = role
        self.registry = registry
        self.status = status
        self.lines = lines
        self.peer_timeout = peer_timeout

    def run(self) -> None:
        """Blocking run-loop. Always leaves the session TERMINATING on return.

        Input is read from the start for both roles, so ``/quit`` and end of
        input work before any peer is known. Only sending waits for the peer.

        Raises :class:`PeerTimeout` if a host message waited ``peer_timeout``
        seconds without anyone contacting it.
        """
        if self.role is Role.HOST and not self.registry.sealed:
            LOG.info("Waiting for the client to connect... Type '%s' to exit.", QUIT_COMMAND)
        else:
            LOG.info("You can now start sending messages. Type '%s' to exit.", QUIT_COMMAND)

        for line in self.lines:
            if not self.status.running:
                break
            if not line.strip():                 # Nothing to send
                continue
            if line.strip() == QUIT_COMMAND:
                self.status.terminate()
                self.transport.cancel()          # Unblock the receive loop now
                return
            peer = self._wait_for_peer()
            if peer is None:                     # Session ended while waiting
                return
            self._send(peer, line)

        self.status.terminate()                  # End of input

    def _wait_for_peer(self) -> Optional[Endpoint]:
        peer = self.registry.get()
        if peer is not None:
            return peer

        LOG.info("No client connected yet; the message is sent once one does")
        try:
            peer = self.registry.wait_until_set(self.peer_timeout)
        except Cancelled:
            LOG.info("Stopped before any client connected")
            return None
        if peer is None:
            self.status.terminate()
            raise PeerTimeout(f"No client connected within {self.peer_timeout:g} seconds")
        return peer

    def _send(self, peer: Endpoint, line: str) -> None:
        payload = line.encode("utf-8")
        if len(payload) > BUF_SIZE:
            LOG.warning("Message is %d bytes; the peer keeps only the first %d",
                        len(payload), BUF_SIZE)
        try:
            self.transport.send_to(peer, payload)
        except SendFailed as exc:
            LOG.error("%s", exc)                  # Best effort: keep the session alive
