"""Exception hierarchy shared by the transport, the loops and the CLI.

``Cancelled`` deliberately sits outside :class:`TransportError`: it is the
shutdown signal, and loops that swallow transport failures must still let it
through.
"""

from __future__ import annotations

__all__ = [
    "ChatError", "Cancelled", "TransportError", "AddressInUse", "BindFailed",
    "SendFailed", "ReceiveFailed", "InvalidInput", "InvalidEndpoint", "NoAvailablePort",
    "PeerTimeout",
]


class ChatError(Exception):
    """Root of every error raised by p2pchat."""


class Cancelled(ChatError):
    """A blocking call was released because the session is shutting down."""


class TransportError(ChatError):
    """A socket operation failed; the socket itself may still be usable."""


class AddressInUse(TransportError):
    """The requested local port is already bound by someone else."""

    def __init__(self, port: int, cause: OSError | None = None) -> None:
        super().__init__(f"Port {port} is already in use")
        self.port = port
        self.cause = cause


class BindFailed(TransportError):
    """Binding failed for a reason other than the port being busy."""

    def __init__(self, port: int, cause: OSError) -> None:
        super().__init__(f"Error binding socket to port {port}: {cause}")
        self.port = port
        self.cause = cause


class SendFailed(TransportError):
    def __init__(self, endpoint, cause: OSError) -> None:
        super().__init__(f"Error sending message to {endpoint}: {cause}")
        self.endpoint = endpoint
        self.cause = cause


class ReceiveFailed(TransportError):
    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Error receiving message: {cause}")
        self.cause = cause


class InvalidInput(ChatError, ValueError):
    """Something typed at a startup prompt could not be used."""


class InvalidEndpoint(InvalidInput):
    """An address or port (typed, or given in code) is malformed."""


class NoAvailablePort(ChatError):
    """Every port of the configured range was busy."""

    def __init__(self, start: int, end: int) -> None:
        super().__init__(f"No available port found in the {start}-{end} range")
        self.start = start
        self.end = end


class PeerTimeout(ChatError):
    """The host waited the configured time and no peer ever showed up."""
