#!/usr/bin/env python3
"""Session controller: wires the transport, the peer registry and both loops.

One ``ChatSession`` is one chat: ``run()`` starts the receive thread, drives the
send loop on the calling thread and does not return before the receive thread
has been joined.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from .errors import PeerTimeout, SendFailed
from .protocol import (
    EXIT_FAILURE, EXIT_NO_PEER, EXIT_OK, PROBE_MESSAGE, Endpoint, Role, SessionState,
)
from .receiver import OutputFn, ReceiveLoop, print_message
from .registry import PeerRegistry, SessionStatus
from .sender import SendLoop
from .transport import DatagramTransport
from .util import LOG


class ChatSession:
    """Host or client side of one peer-to-peer chat."""

    def __init__(
        self,
        transport: DatagramTransport,
        role: Role,
        lines: Iterable[str],
        target: Optional[Endpoint] = None,
        output: OutputFn = print_message,
        peer_timeout: Optional[float] = None,
        probe: str = PROBE_MESSAGE,
    ) -> None:
        if role is Role.CLIENT and target is None:
            raise ValueError("a client session needs the host endpoint as target")

        self.transport = transport
        self.role = role
        self.target = target
        self.probe = probe

        # -------- shared state (one condition guards both) --------
        self.status = SessionStatus()
        self.registry = PeerRegistry(self.status)

        self.receiver = ReceiveLoop(transport, role, self.registry, self.status, output)
        self.sender = SendLoop(transport, role, self.registry, self.status, lines, peer_timeout)
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        return self.status.state

    # ================================================================== main ===
    def run(self) -> int:
        """Run the chat to completion and return a process exit status."""
        if self.role is Role.CLIENT:
            self.registry.try_set(self.target)      # Client knows its peer up front
            try:
                self.transport.send_to(self.target, self.probe.encode("utf-8"))
            except SendFailed as exc:
                LOG.error("%s", exc)
                self.status.terminate()
                self.status.mark_stopped()
                return EXIT_FAILURE
            LOG.info("Test message sent to %s", self.target)

        self._thread = threading.Thread(target=self.receiver.run, name="p2pchat-receiver")
        self._thread.start()

        code = EXIT_OK
        try:
            self.sender.run()
        except PeerTimeout as exc:
            LOG.warning("%s", exc)
            code = EXIT_NO_PEER
        except KeyboardInterrupt:                   # Ctrl-C behaves like /quit
            LOG.info("Shutdown requested")
        finally:
            self.stop()
            self._thread.join()
            self.status.mark_stopped()
            LOG.info("Disconnected")
        return code

    def stop(self) -> None:
        """Ask the session to end. Idempotent; callable from any thread.

        The receive thread and a host message waiting for its peer are released
        at once. A send loop blocked reading its input source only notices on
        the next line or end of input, so ``run()`` returns after that; Ctrl-C
        in the foreground thread has no such delay.
        """
        self.status.terminate()
        self.transport.cancel()

    @property
    def receiver_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
