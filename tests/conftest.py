import queue
import threading
import time

import pytest

from p2pchat.errors import Cancelled, SendFailed
from p2pchat.protocol import Datagram, Endpoint
from p2pchat.registry import PeerRegistry, SessionStatus
from p2pchat.transport import DatagramTransport

TIMEOUT = 5.0  # Upper bound for anything that must "finish promptly"


def wait_until(predicate, timeout=TIMEOUT, interval=0.01):
    """Poll ``predicate`` until it is truthy or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


class ScriptedInput:
    """Stand-in for stdin: lines are fed from the test, ``close()`` is EOF."""

    _EOF = object()

    def __init__(self, *lines):
        self._q = queue.Queue()
        self.feed(*lines)

    def feed(self, *lines):
        for line in lines:
            self._q.put(line)

    def close(self):
        self._q.put(self._EOF)

    def __iter__(self):
        while True:
            line = self._q.get()
            if line is self._EOF:
                return
            yield line


class OutputRecorder:
    """Collects what the receive loop renders."""

    def __init__(self):
        self.messages = []
        self._lock = threading.Lock()

    def __call__(self, sender, text):
        with self._lock:
            self.messages.append((sender, text))

    def texts(self):
        with self._lock:
            return [text for _, text in self.messages]


class FakeTransport:
    """In-memory transport: scripted receives, recorded sends."""

    def __init__(self, fail_sends=False):
        self.sent = []
        self.fail_sends = fail_sends
        self.cancel_calls = 0
        self._inbox = queue.Queue()
        self._cancelled = threading.Event()

    def deliver(self, item):
        """Queue a Datagram (or an exception instance to raise) for receive_from."""
        self._inbox.put(item)

    def receive_from(self):
        if self._cancelled.is_set():
            raise Cancelled()
        item = self._inbox.get()
        if item is None:
            raise Cancelled()
        if isinstance(item, Exception):
            raise item
        return item

    def send_to(self, endpoint, payload):
        if self.fail_sends:
            raise SendFailed(endpoint, OSError(101, "Network is unreachable"))
        self.sent.append((endpoint, payload))
        return len(payload)

    def cancel(self):
        self.cancel_calls += 1
        if not self._cancelled.is_set():
            self._cancelled.set()
            self._inbox.put(None)

    @property
    def cancelled(self):
        return self._cancelled.is_set()


def run_in_thread(target):
    """Start ``target`` on a thread; returns (thread, result dict)."""
    result = {}

    def runner():
        result["value"] = target()

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    return thread, result


@pytest.fixture
def status():
    return SessionStatus()


@pytest.fixture
def registry(status):
    return PeerRegistry(status)


@pytest.fixture
def alice():
    return Endpoint("127.0.0.1", 40001)


@pytest.fixture
def bob():
    return Endpoint("127.0.0.1", 40002)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def loopback():
    """Factory for transports bound to 127.0.0.1; closed at teardown."""
    opened = []

    def make(port=0):
        transport = DatagramTransport.bind(port, "127.0.0.1")
        opened.append(transport)
        return transport

    yield make
    for transport in opened:
        transport.close()


def datagram(sender, text, truncated=False):
    return Datagram(sender, text.encode(), truncated)
