"""p2pchat – a minimal peer-to-peer text chat over UDP.

Importing this package exposes :class:`p2pchat.ChatSession` and the pieces it
is built from, so a session can be embedded in another application or started
with the ``p2pchat`` console script.
"""

__version__ = "1.0.0"

# ------------------------ re-exports ------------------------
from .errors import Cancelled, ChatError                      # noqa: F401
from .protocol import Endpoint, Role, SessionState             # noqa: F401
from .registry import PeerRegistry, SessionStatus              # noqa: F401
from .session import ChatSession                               # noqa: F401
from .transport import DatagramTransport                       # noqa: F401

# ------------------------ public API ------------------------
__all__: list[str] = [
    "Cancelled",
    "ChatError",
    "ChatSession",        # Host/client session controller
    "DatagramTransport",  # Cancellable UDP socket
    "Endpoint",
    "PeerRegistry",       # Set-once peer slot
    "Role",
    "SessionState",
    "SessionStatus",
]
