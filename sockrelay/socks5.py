"""SOCKS5 wire format: method selection, requests and replies."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass

VERSION = 5
METHOD_NOAUTH = 0x00
METHOD_UNACCEPTABLE = 0xFF

_REQUEST_HEADER_LEN = 4
_PORT_LEN = 2


class Command(enum.IntEnum):
    """SOCKS5 request commands."""

    CONNECT = 0x01
    BIND = 0x02
    UDP_ASSOCIATE = 0x03


class AddressType(enum.IntEnum):
    """SOCKS5 address types."""

    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class Reply(enum.IntEnum):
    """SOCKS5 reply codes."""

    SUCCEEDED = 0x00
    GENERAL_FAILURE = 0x01
    NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONN_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    CMD_NOT_SUPPORTED = 0x07
    ADDRTYPE_NOT_SUPPORTED = 0x08


class Socks5Error(Exception):
    """A request the proxy refuses; *reply* is the code to send back, if any."""

    def __init__(self, message: str, reply: Reply | None = None) -> None:
        super().__init__(message)
        self.reply = reply


@dataclass(frozen=True)
class Socks5Request:
    """A parsed SOCKS5 request."""

    command: Command
    address_type: AddressType
    host: str
    port: int

    def address_header(self) -> bytes:
        """Return the address as sent on the wire: type, address and big-endian port."""
        port = self.port.to_bytes(_PORT_LEN, "big")
        if self.address_type is AddressType.DOMAIN:
            name = self.host.encode("ascii", "surrogateescape")
            return bytes([self.address_type, len(name)]) + name + port
        packed = ipaddress.ip_address(self.host).packed
        return bytes([self.address_type]) + packed + port

    @property
    def wire_length(self) -> int:
        """Number of bytes the request took up on the wire."""
        if self.command is Command.UDP_ASSOCIATE and not self.host:
            return _REQUEST_HEADER_LEN
        return _REQUEST_HEADER_LEN - 1 + len(self.address_header())

    def display(self) -> str:
        """Return ``host:port``, with IPv6 addresses in brackets."""
        if self.address_type is AddressType.IPV6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def parse_method_request(data: bytes) -> tuple[bytes, int] | None:
    """Parse a method-selection request.

    Returns the offered methods and the number of bytes consumed, or None
    when more data is needed. Raises Socks5Error on a wrong version.
    """
    if len(data) < 1:
        return None
    if data[0] != VERSION:
        raise Socks5Error(f"unsupported SOCKS version: {data[0]}")
    if len(data) < 2:
        return None
    consumed = 2 + data[1]
    if len(data) < consumed:
        return None
    return bytes(data[2:consumed]), consumed


def select_method(methods) -> int:
    """Choose no-authentication if offered, otherwise the unacceptable marker."""
    return METHOD_NOAUTH if METHOD_NOAUTH in bytes(methods) else METHOD_UNACCEPTABLE


def parse_request(data: bytes) -> Socks5Request | None:
    """Parse a SOCKS5 request.

    Returns None when more data is needed. A UDP ASSOCIATE request is
    accepted from its header alone. Raises Socks5Error, carrying the reply
    code to send, for unsupported commands and address types.
    """
    if len(data) < _REQUEST_HEADER_LEN:
        return None
    cmd, atyp_byte = data[1], data[3]

    if cmd == Command.UDP_ASSOCIATE:
        try:
            atyp = AddressType(atyp_byte)
        except ValueError:
            atyp = AddressType.IPV4
        return Socks5Request(Command.UDP_ASSOCIATE, atyp, "", 0)
    if cmd != Command.CONNECT:
        raise Socks5Error(f"unsupported command: {cmd}", Reply.CMD_NOT_SUPPORTED)

    start = _REQUEST_HEADER_LEN
    if atyp_byte == AddressType.IPV4:
        end = start + 4
        if len(data) < end + _PORT_LEN:
            return None
        host = str(ipaddress.IPv4Address(bytes(data[start:end])))
    elif atyp_byte == AddressType.IPV6:
        end = start + 16
        if len(data) < end + _PORT_LEN:
            return None
        host = str(ipaddress.IPv6Address(bytes(data[start:end])))
    elif atyp_byte == AddressType.DOMAIN:
        if len(data) < start + 1:
            return None
        name_len = data[start]
        end = start + 1 + name_len
        if len(data) < end + _PORT_LEN:
            return None
        host = bytes(data[start + 1:end]).decode("ascii", "surrogateescape")
    else:
        raise Socks5Error(
            f"unsupported addrtype: {atyp_byte}", Reply.ADDRTYPE_NOT_SUPPORTED
        )

    port = int.from_bytes(data[end:end + _PORT_LEN], "big")
    return Socks5Request(Command.CONNECT, AddressType(atyp_byte), host, port)


def build_reply(rep: Reply | int, host: str = "0.0.0.0", port: int = 0) -> bytes:
    """Build a reply carrying an IPv4 or IPv6 bound address."""
    ip = ipaddress.ip_address(host)
    atyp = AddressType.IPV4 if ip.version == 4 else AddressType.IPV6
    return (
        bytes([VERSION, int(rep), 0, atyp])
        + ip.packed
        + int(port).to_bytes(_PORT_LEN, "big")
    )