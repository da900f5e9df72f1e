"""The client side of a SOCKS5 session, from greeting to the start of the stream."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass

from .socks5 import (
    METHOD_UNACCEPTABLE,
    VERSION,
    AddressType,
    Command,
    Reply,
    Socks5Error,
    Socks5Request,
    build_reply,
    parse_method_request,
    parse_request,
    select_method,
)

logger = logging.getLogger(__name__)


class Stage(enum.Enum):
    """Where a client session stands."""

    INIT = "init"
    HANDSHAKE = "handshake"
    STREAM = "stream"
    ASSOCIATED = "associated"
    CLOSED = "closed"


class Cipher(abc.ABC):
    """A stream cipher applied to data relayed through the remote server."""

    @abc.abstractmethod
    def encrypt(self, data: bytes) -> bytes:
        """Return *data* encrypted."""

    @abc.abstractmethod
    def decrypt(self, data: bytes) -> bytes:
        """Return *data* decrypted."""


class IdentityCipher(Cipher):
    """A cipher that leaves data as it is, for direct connections."""

    def encrypt(self, data: bytes) -> bytes:
        return bytes(data)

    def decrypt(self, data: bytes) -> bytes:
        return bytes(data)


@dataclass
class HandshakeResult:
    """What one call to :meth:`Socks5Handshake.feed` produced.

    *reply* is to be sent to the client, *request* is set once a request
    has been accepted, *payload* holds client data that followed it, and
    *close* tells the caller to drop the connection after sending *reply*.
    """

    reply: bytes = b""
    request: Socks5Request | None = None
    payload: bytes = b""
    close: bool = False

    @property
    def connect_ready(self) -> bool:
        """True when a CONNECT request has been accepted."""
        return self.request is not None and self.request.command is Command.CONNECT


class Socks5Handshake:
    """Feeds client bytes through method selection and the request.

    *bind_host* and *bind_port* are the local address reported to a client
    that asks for UDP ASSOCIATE.
    """

    def __init__(self, bind_host: str = "0.0.0.0", bind_port: int = 0) -> None:
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.stage = Stage.INIT
        self.request: Socks5Request | None = None
        self._buffer = bytearray()

    def _close(self, result: HandshakeResult) -> HandshakeResult:
        self.stage = Stage.CLOSED
        self._buffer.clear()
        result.close = True
        return result

    def feed(self, data: bytes) -> HandshakeResult:
        """Take bytes from the client and return what to do with them."""
        if self.stage is Stage.CLOSED:
            raise Socks5Error("session closed")
        if self.stage is Stage.STREAM:
            return HandshakeResult(payload=bytes(data))
        if self.stage is Stage.ASSOCIATED:
            # The client keeps the TCP connection only to hold the association.
            return HandshakeResult()

        self._buffer += data
        result = HandshakeResult()
        replies = bytearray()

        while True:
            if self.stage is Stage.INIT:
                try:
                    parsed = parse_method_request(self._buffer)
                except Socks5Error as exc:
                    logger.debug("%s", exc)
                    result.reply = bytes(replies)
                    return self._close(result)
                if parsed is None:
                    break
                methods, consumed = parsed
                method = select_method(methods)
                replies += bytes([VERSION, method])
                if method == METHOD_UNACCEPTABLE:
                    result.reply = bytes(replies)
                    return self._close(result)
                del self._buffer[:consumed]
                self.stage = Stage.HANDSHAKE
                continue

            try:
                request = parse_request(self._buffer)
            except Socks5Error as exc:
                logger.error("%s", exc)
                rep = exc.reply if exc.reply is not None else Reply.GENERAL_FAILURE
                replies += bytes([VERSION, int(rep), 0, int(AddressType.IPV4)])
                result.reply = bytes(replies)
                return self._close(result)
            if request is None:
                break

            del self._buffer[:request.wire_length]
            self.request = request
            result.request = request
            if request.command is Command.UDP_ASSOCIATE:
                logger.info("udp assc request accepted")
                replies += build_reply(Reply.SUCCEEDED, self.bind_host, self.bind_port)
                self.stage = Stage.ASSOCIATED
                self._buffer.clear()
                break

            replies += build_reply(Reply.SUCCEEDED)
            self.stage = Stage.STREAM
            result.payload = bytes(self._buffer)
            self._buffer.clear()
            break

        result.reply = bytes(replies)
        return result