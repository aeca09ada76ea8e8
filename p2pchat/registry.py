#!/usr/bin/env python3
"""Session lifecycle flag and the set-once peer slot.

Both objects share one ``threading.Condition``: a host waiting for its first
peer is woken either because the peer arrived or because the session started
shutting down, and cannot miss either event.
"""

from __future__ import annotations

import threading
from typing import Optional

from .errors import Cancelled
from .protocol import Endpoint, SessionState


class SessionStatus:
    """Thread-safe ``RUNNING -> TERMINATING -> STOPPED`` state machine."""

    def __init__(self, condition: Optional[threading.Condition] = None) -> None:
        self.condition = condition or threading.Condition()
        self._state = SessionState.RUNNING

    @property
    def state(self) -> SessionState:
        with self.condition:
            return self._state

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING

    def terminate(self) -> bool:
        """Move to TERMINATING and wake all waiters.

        Returns True only for the call that actually left RUNNING.
        """
        with self.condition:
            if self._state is not SessionState.RUNNING:
                return False
            self._state = SessionState.TERMINATING
            self.condition.notify_all()
            return True

    def mark_stopped(self) -> None:
        with self.condition:
            self._state = SessionState.STOPPED
            self.condition.notify_all()


class PeerRegistry:
    """Holds the confirmed remote endpoint; written at most once."""

    def __init__(self, status: Optional[SessionStatus] = None) -> None:
        self.status = status or SessionStatus()
        self._cond = self.status.condition
        self._peer: Optional[Endpoint] = None

    @property
    def sealed(self) -> bool:
        with self._cond:
            return self._peer is not None

    def get(self) -> Optional[Endpoint]:
        with self._cond:
            return self._peer

    def try_set(self, endpoint: Endpoint) -> bool:
        """Record ``endpoint`` if the slot is empty. Later calls are no-ops."""
        with self._cond:
            if self._peer is not None:
                return False
            self._peer = endpoint
            self._cond.notify_all()
            return True

    def wait_until_set(self, timeout: Optional[float] = None) -> Optional[Endpoint]:
        """Block until a peer is recorded or the session stops running.

        Returns the peer, or ``None`` if ``timeout`` seconds elapsed first.
        Raises :class:`Cancelled` when the session left RUNNING with no peer.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._peer is not None or self.status._state is not SessionState.RUNNING,
                timeout,
            )
            if self._peer is not None:
                return self._peer
            if self.status._state is not SessionState.RUNNING:
                raise Cancelled()
            return None
