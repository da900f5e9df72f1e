"""Address resolution, comparison and validation helpers for sockets."""

from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_HOSTNAME_LEN = 256
MAX_PORT_STR_LEN = 6
SOCKET_BUF_SIZE = 16 * 1024 - 1
MPTCP_ENABLED_VALUES = (42, 26)
UPDATE_INTERVAL = 5
INET_SIZE = 4
INET6_SIZE = 16

_SO_REUSEPORT = getattr(socket, "SO_REUSEPORT", 15)
_VALID_LABEL_CHARS = frozenset(
    "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
)

SockAddr = tuple


@dataclass(frozen=True)
class ServerAddress:
    """A host with an optional port, as given on the command line or in config."""

    host: str
    port: str | None = None


def _ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def _sockaddr_for(ip: ipaddress.IPv4Address | ipaddress.IPv6Address, port: int) -> SockAddr:
    if ip.version == 4:
        return (str(ip), port)
    return (str(ip), port, 0, 0)


def sockaddr_family(addr: SockAddr) -> socket.AddressFamily:
    """Return the address family of a socket address tuple."""
    return socket.AF_INET6 if len(addr) == 4 else socket.AF_INET


def get_sockaddr(host: str, port: str | int | None, ipv6first: bool = False) -> SockAddr:
    """Resolve *host* and *port* into a socket address tuple.

    IP literals are used as they are; names are resolved, preferring IPv6
    addresses when *ipv6first* is set and IPv4 addresses otherwise.
    """
    port_num = int(port) if port is not None else 0
    ip = _ip(host)
    if ip is not None:
        return _sockaddr_for(ip, port_num)

    try:
        results = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as exc:
        logger.error("getaddrinfo: %s", exc)
        raise

    prefer = socket.AF_INET6 if ipv6first else socket.AF_INET
    usable = [r for r in results if r[0] in (socket.AF_INET, socket.AF_INET6)]
    for family, _type, _proto, _canon, sockaddr in usable:
        if family == prefer:
            return tuple(sockaddr)
    if usable:
        return tuple(usable[0][4])
    logger.error("failed to resolve remote addr")
    raise OSError(f"failed to resolve remote addr: {host}")


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _packed(addr: SockAddr) -> bytes:
    return ipaddress.ip_address(addr[0].split("%", 1)[0]).packed


def sockaddr_cmp(addr1: SockAddr, addr2: SockAddr) -> int:
    """Order two socket addresses by family, port and address; return -1, 0 or 1."""
    result = _cmp(int(sockaddr_family(addr1)), int(sockaddr_family(addr2)))
    if result:
        return result
    result = _cmp(addr1[1], addr2[1])
    if result:
        return result
    return _cmp(_packed(addr1), _packed(addr2))


def sockaddr_cmp_addr(addr1: SockAddr, addr2: SockAddr) -> int:
    """Order two socket addresses by family and address, ignoring the port."""
    result = _cmp(int(sockaddr_family(addr1)), int(sockaddr_family(addr2)))
    if result:
        return result
    return _cmp(_packed(addr1), _packed(addr2))


def validate_hostname(hostname: str | None) -> bool:
    """Return True if *hostname* is a syntactically valid DNS name."""
    if hostname is None:
        return False
    if not 1 <= len(hostname) <= 255:
        return False
    if hostname.startswith("."):
        return False
    body = hostname[:-1] if hostname.endswith(".") else hostname
    for label in body.split("."):
        if not 1 <= len(label) <= 63:
            return False
        if label.startswith("-") or label.endswith("-"):
            return False
        if not set(label) <= _VALID_LABEL_CHARS:
            return False
    return True


def is_ipv6only(servers: Iterable[ServerAddress], ipv6first: bool = False) -> bool:
    """Return True if every server resolves to an IPv6 address."""
    for server in servers:
        addr = get_sockaddr(server.host, server.port, ipv6first)
        if sockaddr_family(addr) != socket.AF_INET6:
            return False
    return True


def parse_local_addr(host: str | None) -> SockAddr:
    """Turn an IP literal into a socket address with port 0 for outbound binding."""
    ip = _ip(host) if host is not None else None
    if ip is None:
        raise ValueError(f"not an IP address: {host!r}")
    logger.info("binding to outbound IPv%d addr: %s", ip.version, host)
    return _sockaddr_for(ip, 0)


def set_reuseport(sock: socket.socket) -> None:
    """Enable SO_REUSEPORT on *sock*."""
    sock.setsockopt(socket.SOL_SOCKET, _SO_REUSEPORT, 1)


def bind_to_addr(sock: socket.socket, addr: SockAddr) -> None:
    """Bind *sock* to an IPv4 or IPv6 socket address."""
    if len(addr) not in (2, 4):
        raise ValueError(f"unsupported socket address: {addr!r}")
    sock.bind(addr)