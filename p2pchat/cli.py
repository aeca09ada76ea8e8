#!/usr/bin/env python3
"""Command-line entry point: pick a role, find endpoints, run one chat session.

Usage (after installing the package locally):

    p2pchat --role host
    p2pchat --role client --peer 203.0.113.22 --peer-port 5000

Anything not given on the command line is asked for interactively.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Iterator, Optional, Sequence

from colorama import Fore, Style, init

from .errors import BindFailed, InvalidInput, NoAvailablePort
from .protocol import DEFAULT_BIND_HOST, EXIT_FAILURE, PORT_RANGE, Endpoint, Role
from .receiver import PROMPT
from .resolver import (
    bind_in_range, host_endpoints, parse_address, parse_endpoint, parse_port, parse_port_range,
)
from .session import ChatSession
from .util import LOG, configure_logging

MAX_PROMPT_ATTEMPTS = 3

AskFn = Callable[[str], str]


# ----------------------------------------------------------------------
# interactive prompts
# ----------------------------------------------------------------------

def prompt_role(ask: AskFn = input, attempts: int = MAX_PROMPT_ATTEMPTS) -> Role:
    """Ask "Are you the host? (y/n)"; the role names are accepted too."""
    for _ in range(attempts):
        answer = ask("Are you the host? (y/n): ").strip().lower()
        if answer in {"y", "yes", "host"}:
            return Role.HOST
        if answer in {"n", "no", "client"}:
            return Role.CLIENT
        print("Please answer y or n.", file=sys.stderr)
    raise InvalidInput("No valid role given")


def prompt_target(ask: AskFn = input, attempts: int = MAX_PROMPT_ATTEMPTS,
                  address: Optional[str] = None, port: Optional[int] = None) -> Endpoint:
    """Ask for the host's address and port, re-prompting on bad input."""
    if address is None:
        kind = _prompt_address_kind(ask, attempts)
        address = _retry(lambda: parse_address(ask(f"Enter the host's {kind} IP address: ")),
                         attempts, "Invalid IP address format. Please try again.")
    if port is None:
        port = _retry(lambda: parse_port(ask("Enter the host's port: ")),
                      attempts, "Invalid port number. Please enter a value between 1 and 65535.")
    return parse_endpoint(address, port)


def _prompt_address_kind(ask: AskFn, attempts: int) -> str:
    for _ in range(attempts):
        choice = ask("Do you want to connect using (1) Public IP or (2) Internal IP? Enter 1 or 2: ").strip()
        if choice == "1":
            return "public"
        if choice == "2":
            return "internal"
        print("Invalid choice. Please enter 1 for Public IP or 2 for Internal IP.", file=sys.stderr)
    raise InvalidInput("No valid connection choice given")


def _retry(read: Callable[[], object], attempts: int, hint: str):
    last_exc: Optional[InvalidInput] = None
    for _ in range(attempts):
        try:
            return read()
        except InvalidInput as exc:
            last_exc = exc
            print(hint, file=sys.stderr)
    raise last_exc


def stdin_lines(prompt: str = PROMPT) -> Iterator[str]:
    """Yield lines typed on stdin until end of input (Ctrl-D).

    ``input()`` cannot be interrupted from another thread, so a session stopped
    elsewhere ends only once the user presses Enter, Ctrl-D or Ctrl-C.
    """
    while True:
        try:
            yield input(prompt)
        except EOFError:
            return


def announce_host(port: int, lookup_public: bool) -> None:
    if lookup_public:
        LOG.info("Fetching public IP address...")
    endpoints = host_endpoints(port, lookup_public)
    if endpoints.internal:
        print(f"Your internal endpoint (for local network): {Fore.CYAN}{endpoints.internal}{Style.RESET_ALL}")
    else:
        print("Failed to retrieve internal IP address.", file=sys.stderr)
    if endpoints.public:
        print(f"Your public endpoint (share this with the other side): "
              f"{Fore.CYAN}{endpoints.public}{Style.RESET_ALL}")
    else:
        print(f"Proceeding without public endpoint. Ensure port {port} is forwarded "
              f"manually if connecting over the internet.")


# ======================================================================
#  Command-line entry point
# ======================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("p2pchat", description="Peer-to-peer UDP chat")
    parser.add_argument("--role", choices=[r.value for r in Role], help="skip the host/client prompt")
    parser.add_argument("--peer", metavar="ADDRESS", help="client: host IP address")
    parser.add_argument("--peer-port", metavar="PORT", type=int, help="client: host UDP port")
    parser.add_argument("--bind", default=DEFAULT_BIND_HOST, help="local address to bind")
    parser.add_argument("--port-range", default=f"{PORT_RANGE[0]}-{PORT_RANGE[1]}",
                        help="local ports to try, START-END")
    parser.add_argument("--no-public-ip", action="store_true", help="host: skip the public IP lookup")
    parser.add_argument("--peer-timeout", type=float, metavar="SECONDS",
                        help="host: how long a typed message waits for a client before giving up")
    parser.add_argument("--log-file", default="p2pchat.log", help="rotating log file ('' disables)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse CLI args then run one host or client session. Returns exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file or None)
    init(autoreset=True)                        # Reset colour after each print

    try:
        role = Role(args.role) if args.role else prompt_role()
        port_range = parse_port_range(args.port_range)
        transport = bind_in_range(*port_range, host=args.bind)
    except (InvalidInput, NoAvailablePort, BindFailed) as exc:
        LOG.error("%s", exc)
        return EXIT_FAILURE
    except EOFError:
        LOG.error("Input closed before startup finished")
        return EXIT_FAILURE

    with transport:
        target = None
        if role is Role.HOST:
            announce_host(transport.local_endpoint.port, not args.no_public_ip)
        else:
            try:
                target = prompt_target(address=args.peer, port=args.peer_port)
            except InvalidInput as exc:
                LOG.error("%s", exc)
                return EXIT_FAILURE
            except EOFError:
                LOG.error("Input closed before startup finished")
                return EXIT_FAILURE

        session = ChatSession(transport, role, stdin_lines(), target=target,
                              peer_timeout=args.peer_timeout)
        return session.run()


if __name__ == "__main__":
    sys.exit(main())
