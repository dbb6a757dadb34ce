"""
TXT record resolution as a suspendable task.

A pure consumer of the runtime: it registers a UDP socket, yields
`again(token, timeout)` while waiting for a reply, and returns the answers
(or raises a ResolverError). Nothing protocol-specific leaks into the
scheduler.

Strategy: try every server in order, and for each server every name in
order. Each attempt gets a fresh socket bound to an ephemeral port; replies
from any other address are ignored. The first non-empty answer list wins.

Example:
    ```python
    with Reactor() as reactor:
        records = resolve(reactor, ["example.com"]).run()
    ```
"""

import ipaddress
import logging
import socket
from collections.abc import Generator, Iterable, Sequence

from pykairos.core import SuspensionDescriptor, again, monotonic
from pykairos.decorators import task
from pykairos.dns.errors import OutOfOptionsError, ResolverError
from pykairos.dns.packet import DEFAULT_QUERY_ID, HEADER_SIZE, decode_txt_answers, encode_query
from pykairos.executor.reactor import Reactor

__all__ = ["DEFAULT_SERVERS", "RESOLV_CONF", "resolve", "system_nameservers"]

logger = logging.getLogger(__name__)

DNS_PORT = 53
RESOLV_CONF = "/etc/resolv.conf"
RECEIVE_BUFFER = 1024

DEFAULT_SERVERS: tuple[tuple[str, int], ...] = (
    ("1.1.1.1", DNS_PORT),
    ("8.8.8.8", DNS_PORT),
    ("9.9.9.9", DNS_PORT),
    ("78.35.40.149", DNS_PORT),
)

Server = tuple[str, int]


def _parse_nameserver(value: str) -> Server | None:
    """Accept a bare address (port 53) or `host:port` / `[v6]:port`."""
    try:
        ipaddress.ip_address(value)
        return (value, DNS_PORT)
    except ValueError:
        pass

    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit() or int(port) > 0xFFFF:
        return None
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        return None
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return None
    return (host, int(port))


def system_nameservers(path: str = RESOLV_CONF) -> list[Server]:
    """
    Read `nameserver` entries from a resolv.conf-style file.

    Entries may carry a port (`10.0.0.1:5353`, `[::1]:5353`); anything that
    is not an IP address is skipped.

    Raises:
        ResolverError: If the file cannot be read
    """
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise ResolverError(f"Failed to read {path}: {e}") from e

    servers = []
    for line in lines:
        fields = line.split()
        if len(fields) < 2 or fields[0] != "nameserver":
            continue
        server = _parse_nameserver(fields[1])
        if server is None:
            logger.debug(f"Ignoring nameserver entry {fields[1]!r} in {path}")
            continue
        servers.append(server)
    return servers


def _same_host(sender: tuple, server: Server) -> bool:
    try:
        return (
            ipaddress.ip_address(sender[0]) == ipaddress.ip_address(server[0])
            and sender[1] == server[1]
        )
    except ValueError:
        return False


def _open_socket(server: Server) -> socket.socket:
    family = socket.AF_INET6 if ":" in server[0] else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_DGRAM)
    sock.setblocking(False)
    sock.bind(("::" if family == socket.AF_INET6 else "0.0.0.0", 0))
    return sock


def _exchange(
    reactor: Reactor,
    server: Server,
    query: bytes,
    attempt_timeout: float,
    total_timeout: float,
) -> Generator[SuspensionDescriptor, None, bytes | None]:
    """
    Send one query and wait for the matching reply.

    Returns:
        The reply packet, or None on timeout or send failure
    """
    started = monotonic()
    try:
        sock = _open_socket(server)
    except OSError as e:
        logger.warning(f"Cannot open socket for {server[0]}: {e}")
        return None

    with reactor.registered(sock) as token:
        try:
            sock.sendto(query, server)
        except OSError as e:
            logger.warning(f"Failed to send query to {server[0]}:{server[1]}: {e}")
            return None

        while True:
            remaining = total_timeout - (monotonic() - started)
            if remaining <= 0:
                logger.debug(f"No reply from {server[0]}:{server[1]} after {total_timeout}s")
                return None

            yield again(token, min(attempt_timeout, remaining))

            try:
                packet, sender = sock.recvfrom(RECEIVE_BUFFER)
            except BlockingIOError:
                continue
            except OSError as e:
                # e.g. a queued ECONNREFUSED from an earlier ICMP error
                logger.debug(f"Receive from {server[0]}:{server[1]} failed: {e}")
                return None

            if _same_host(sender, server) and len(packet) >= HEADER_SIZE:
                return packet
            logger.debug(f"Dropping {len(packet)} byte datagram from {sender}")


@task
def resolve(
    reactor: Reactor,
    names: Iterable[str],
    servers: Sequence[Server] | None = None,
    attempt_timeout: float = 2.0,
    total_timeout: float = 5.0,
    query_id: int = DEFAULT_QUERY_ID,
) -> Generator[SuspensionDescriptor, None, list[str]]:
    """
    Resolve the TXT records of the first name any server answers for.

    Args:
        reactor: Shared reactor
        names: Names to try, in order
        servers: (host, port) pairs to try, in order. Defaults to the public
                 resolvers followed by the system's nameservers.
        attempt_timeout: Seconds to wait for readiness before re-checking
        total_timeout: Seconds before giving up on one server/name pair
        query_id: Transaction id for outgoing queries

    Returns:
        The TXT strings of the first non-empty answer

    Raises:
        NameTooLongError: A name does not fit the wire format
        OutOfOptionsError: Every server/name pair failed
    """
    names = list(names)
    if servers is None:
        servers = list(DEFAULT_SERVERS)
        try:
            servers.extend(system_nameservers())
        except ResolverError as e:
            logger.warning(f"Skipping system nameservers: {e}")

    for server in servers:
        for name in names:
            query = encode_query(name, query_id)
            logger.debug(f"Resolving {name!r} via {server[0]}:{server[1]}")

            packet = yield from _exchange(reactor, server, query, attempt_timeout, total_timeout)
            if packet is None:
                continue

            try:
                answers = decode_txt_answers(packet, query_id)
            except ResolverError as e:
                logger.debug(f"Bad response from {server[0]}:{server[1]} for {name!r}: {e}")
                continue

            if answers:
                logger.info(f"Resolved {name!r} via {server[0]}:{server[1]}: {len(answers)} record(s)")
                return answers

    raise OutOfOptionsError(f"No TXT answer for {names} from {len(servers)} server(s)")
