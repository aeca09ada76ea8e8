#!/usr/bin/env python3
"""The one UDP socket a chat session talks through.

``receive_from`` blocks in ``select`` on two descriptors: the chat socket and
the read end of a private socket pair.  ``cancel`` writes a byte into the pair,
which wakes the receiver no matter which thread calls it.
"""

from __future__ import annotations

import errno
import select
import socket
import threading

from .errors import AddressInUse, BindFailed, Cancelled, ReceiveFailed, SendFailed
from .protocol import BUF_SIZE, DEFAULT_BIND_HOST, Datagram, Endpoint
from .util import LOG


class DatagramTransport:
    """Thin wrapper over a bound UDP socket with a cancellable receive."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock

        # Wake-up pair: cancel() writes, receive_from() watches the read end.
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)

        self._cancelled = threading.Event()
        self._lock = threading.Lock()      # Serialises cancel() / close()
        self._closed = False

    # ------------------------------------------------------------------ setup
    @classmethod
    def bind(cls, port: int, host: str = DEFAULT_BIND_HOST) -> "DatagramTransport":
        """Open a UDP socket bound to ``host:port`` (port 0 lets the OS choose).

        No retry here: callers scanning a port range catch :class:`AddressInUse`.
        """
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            if exc.errno == errno.EADDRINUSE:
                raise AddressInUse(port, exc) from exc
            raise BindFailed(port, exc) from exc
        transport = cls(sock)
        LOG.debug("Socket bound on %s", transport.local_endpoint)
        return transport

    @property
    def local_endpoint(self) -> Endpoint:
        return Endpoint.from_sockaddr(self.sock.getsockname())

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    # ------------------------------------------------------------- networking
    def send_to(self, endpoint: Endpoint, payload: bytes) -> int:
        """Send one datagram; any OS error becomes :class:`SendFailed`."""
        try:
            return self.sock.sendto(payload, endpoint.as_sockaddr())
        except OSError as exc:
            raise SendFailed(endpoint, exc) from exc

    def receive_from(self) -> Datagram:
        """Block until a datagram arrives or :meth:`cancel` is called.

        Reads one byte more than ``BUF_SIZE`` so an oversize datagram can be
        told apart from one that fits exactly; it is then cut to ``BUF_SIZE``.
        """
        if self._cancelled.is_set():
            raise Cancelled()

        try:
            ready, _, _ = select.select([self.sock, self._wake_r], [], [])
        except (OSError, ValueError) as exc:   # ValueError: fd already closed
            if self._cancelled.is_set():
                raise Cancelled() from exc
            raise ReceiveFailed(exc) from exc

        if self._wake_r in ready or self._cancelled.is_set():
            raise Cancelled()

        try:
            data, addr = self.sock.recvfrom(BUF_SIZE + 1)
        except OSError as exc:
            if self._cancelled.is_set():
                raise Cancelled() from exc
            raise ReceiveFailed(exc) from exc

        truncated = len(data) > BUF_SIZE
        return Datagram(Endpoint.from_sockaddr(addr), data[:BUF_SIZE], truncated)

    # ------------------------------------------------------------- shutdown
    def cancel(self) -> None:
        """Release a pending :meth:`receive_from`; later calls fail fast too."""
        with self._lock:
            if self._cancelled.is_set() or self._closed:
                self._cancelled.set()
                return
            self._cancelled.set()
            self._wake_w.send(b"\0")       # Single byte, the pair can't be full
        LOG.debug("Transport cancelled")

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancelled.set()
            self.sock.close()
            self._wake_r.close()
            self._wake_w.close()

    def __enter__(self) -> "DatagramTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
