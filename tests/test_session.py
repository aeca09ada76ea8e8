import pytest

from p2pchat.protocol import (
    EXIT_FAILURE, EXIT_NO_PEER, EXIT_OK, PROBE_MESSAGE, Endpoint, Role, SessionState,
)
from p2pchat.receiver import format_message
from p2pchat.resolver import bind_in_range
from p2pchat.session import ChatSession

from conftest import TIMEOUT, OutputRecorder, ScriptedInput, run_in_thread, wait_until


def finish(thread, result, session):
    thread.join(TIMEOUT)
    assert not thread.is_alive(), "session.run() did not return"
    assert not session.receiver_alive
    assert session.state is SessionState.STOPPED
    return result["value"]


def test_client_requires_target(loopback):
    with pytest.raises(ValueError):
        ChatSession(loopback(), Role.CLIENT, [])


def test_echo_scenario(loopback):
    """Host and client talk over loopback, host bound inside the default range."""
    host_transport = bind_in_range(5000, 5999, host="127.0.0.1")
    client_transport = loopback()
    try:
        host_ep = Endpoint("127.0.0.1", host_transport.local_endpoint.port)
        client_ep = client_transport.local_endpoint

        host_in, client_in = ScriptedInput(), ScriptedInput()
        host_out, client_out = OutputRecorder(), OutputRecorder()
        host = ChatSession(host_transport, Role.HOST, host_in, output=host_out)
        client = ChatSession(client_transport, Role.CLIENT, client_in, target=host_ep,
                             output=client_out)

        host_thread, host_result = run_in_thread(host.run)
        client_thread, client_result = run_in_thread(client.run)

        # Host adopts the client as peer from its first datagram.
        assert wait_until(lambda: host.registry.get() == client_ep)
        assert wait_until(lambda: host_out.messages == [(client_ep, PROBE_MESSAGE)])

        host_in.feed("hi")
        assert wait_until(lambda: client_out.messages == [(host_ep, "hi")])
        sender, text = client_out.messages[0]
        assert format_message(sender, text) == f"[Message from 127.0.0.1:{host_ep.port}] hi"

        client_in.feed("hello back")
        assert wait_until(lambda: "hello back" in host_out.texts())

        host_in.feed("/quit")
        client_in.feed("/quit")
        assert finish(host_thread, host_result, host) == EXIT_OK
        assert finish(client_thread, client_result, client) == EXIT_OK
    finally:
        host_transport.close()


# ----------------------------------------------------------------------
# termination matrix: {host, client} x {no peer, peer then quit, quit or EOF first}
# ----------------------------------------------------------------------

def test_host_message_held_then_stopped_externally(loopback):
    session = ChatSession(loopback(), Role.HOST, ScriptedInput("hi"))
    thread, result = run_in_thread(session.run)

    assert wait_until(lambda: session.receiver_alive)
    session.stop()

    assert finish(thread, result, session) == EXIT_OK


def test_host_peer_never_appears_with_timeout(loopback):
    session = ChatSession(loopback(), Role.HOST, ScriptedInput("hi"), peer_timeout=0.1)
    thread, result = run_in_thread(session.run)
    assert finish(thread, result, session) == EXIT_NO_PEER


def test_host_peer_appears_then_quit(loopback):
    host_transport, peer = loopback(), loopback()
    lines = ScriptedInput()
    session = ChatSession(host_transport, Role.HOST, lines, output=OutputRecorder())
    thread, result = run_in_thread(session.run)

    peer.send_to(host_transport.local_endpoint, b"knock knock")
    assert wait_until(lambda: session.registry.sealed)
    lines.feed("/quit")

    assert finish(thread, result, session) == EXIT_OK


def test_host_quit_before_any_datagram(loopback):
    session = ChatSession(loopback(), Role.HOST, ScriptedInput("/quit"))
    thread, result = run_in_thread(session.run)
    assert finish(thread, result, session) == EXIT_OK
    assert not session.registry.sealed


def test_host_end_of_input_before_any_datagram(loopback):
    session = ChatSession(loopback(), Role.HOST, [])
    thread, result = run_in_thread(session.run)
    assert finish(thread, result, session) == EXIT_OK
    assert not session.registry.sealed


def test_client_peer_never_answers_then_quit(loopback):
    silent_host = loopback()
    lines = ScriptedInput("anyone there?", "/quit")
    session = ChatSession(loopback(), Role.CLIENT, lines, target=silent_host.local_endpoint,
                          output=OutputRecorder())
    thread, result = run_in_thread(session.run)
    assert finish(thread, result, session) == EXIT_OK

    assert silent_host.receive_from().payload == PROBE_MESSAGE.encode()
    assert silent_host.receive_from().payload == b"anyone there?"


def test_client_peer_answers_then_quit(loopback):
    host = loopback()
    client_transport = loopback()
    lines = ScriptedInput()
    output = OutputRecorder()
    session = ChatSession(client_transport, Role.CLIENT, lines, target=host.local_endpoint,
                          output=output)
    thread, result = run_in_thread(session.run)

    hello = host.receive_from()
    host.send_to(hello.sender, b"welcome")
    assert wait_until(lambda: output.texts() == ["welcome"])
    lines.feed("/quit")

    assert finish(thread, result, session) == EXIT_OK


def test_client_quit_before_any_datagram(loopback):
    session = ChatSession(loopback(), Role.CLIENT, ScriptedInput("/quit"),
                          target=loopback().local_endpoint)
    thread, result = run_in_thread(session.run)
    assert finish(thread, result, session) == EXIT_OK


def test_client_end_of_input(loopback):
    session = ChatSession(loopback(), Role.CLIENT, [], target=loopback().local_endpoint)
    assert session.run() == EXIT_OK
    assert session.state is SessionState.STOPPED
    assert not session.receiver_alive


def test_client_first_send_failure_is_a_startup_error(loopback):
    transport = loopback()
    transport.close()
    session = ChatSession(transport, Role.CLIENT, ["never"], target=Endpoint("127.0.0.1", 9))

    assert session.run() == EXIT_FAILURE
    assert not session.receiver_alive


def test_keyboard_interrupt_shuts_down_cleanly(loopback):
    def interrupted():
        yield "first"
        raise KeyboardInterrupt

    session = ChatSession(loopback(), Role.CLIENT, interrupted(), target=loopback().local_endpoint)
    assert session.run() == EXIT_OK
    assert session.state is SessionState.STOPPED
    assert not session.receiver_alive


def test_stop_is_idempotent(loopback):
    session = ChatSession(loopback(), Role.HOST, [])
    session.stop()
    session.stop()
    assert session.state is SessionState.TERMINATING
