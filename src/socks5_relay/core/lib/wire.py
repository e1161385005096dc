"""Byte-level codec for the SOCKS5 messages used by the relay.

This module encodes and decodes the four fixed layouts of RFC 1928 that a
CONNECT-only, no-auth server needs:
- Greeting (version identifier / method selection message)
- Method selection reply
- Detail request
- Detail reply

The codec only checks structure. Deciding whether a command, address type
or auth method is acceptable belongs to the negotiator. The one exception is
the greeting version byte, since the method count that follows cannot be
trusted without it.

Reads go straight to ``recv`` on the stream without any read-ahead, so bytes
a client pipelines after its request stay in the socket for the relay.

Example:
    greeting = decode_greeting(sock)
    sock.sendall(encode_method_selection(AuthMethod.NO_AUTH))
"""

import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final, Protocol

from socks5_relay.core.exceptions import ProtocolError, ProtocolErrorKind

SOCKS_VERSION: Final = 0x05
RESERVED: Final = 0x00

# Header layouts
GREETING_HEADER: Final = struct.Struct("!BB")
METHOD_SELECTION: Final = struct.Struct("!BB")
DETAIL_HEADER: Final = struct.Struct("!BBBB")
PORT: Final = struct.Struct("!H")
DETAIL_REPLY: Final = struct.Struct("!BBBB4sH")

IPV4_LENGTH: Final = 4
UNSPECIFIED_IPV4: Final = "0.0.0.0"


class AuthMethod(IntEnum):
    """Method identifiers from a greeting."""

    NO_AUTH = 0x00
    GSSAPI = 0x01
    USERNAME_PASSWORD = 0x02
    NO_ACCEPTABLE = 0xFF


class Command(IntEnum):
    """Detail request commands."""

    CONNECT = 0x01
    BIND = 0x02
    UDP_ASSOCIATE = 0x03


class AddressType(IntEnum):
    """Detail request / reply address types."""

    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class ReplyCode(IntEnum):
    """REP field of a detail reply."""

    SUCCEEDED = 0x00
    GENERAL_FAILURE = 0x01
    NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08
    UNASSIGNED = 0x09


class Stream(Protocol):
    """Anything with a socket-style ``recv``."""

    def recv(self, bufsize: int, /) -> bytes: ...


@dataclass(frozen=True)
class Greeting:
    """Client greeting: version and the methods it offers, in order."""

    version: int
    methods: bytes

    def offers(self, method: int) -> bool:
        return method in self.methods


@dataclass(frozen=True)
class MethodSelection:
    """Server's answer to a greeting."""

    version: int
    method: int


@dataclass(frozen=True)
class DetailHeader:
    """First four bytes of a detail request.

    ``command`` and ``address_type`` are left as plain ints because a client
    may send values this relay does not know.
    """

    version: int
    command: int
    reserved: int
    address_type: int


@dataclass(frozen=True)
class DetailRequest:
    """A complete detail request.

    ``address`` holds the 4 raw bytes for IPv4 or the domain name bytes.
    """

    version: int
    command: int
    reserved: int
    address_type: AddressType
    address: bytes
    port: int

    @property
    def host(self) -> str:
        if self.address_type == AddressType.IPV4:
            return socket.inet_ntoa(self.address)
        return self.address.decode("utf-8", errors="replace")

    @property
    def destination(self) -> str:
        """Destination as ``a.b.c.d:port`` or ``name:port``."""
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class DetailReply:
    """Reply to a detail request; always encoded with an IPv4 bound address."""

    reply: ReplyCode
    bind_address: str = UNSPECIFIED_IPV4
    bind_port: int = 0
    version: int = SOCKS_VERSION
    reserved: int = RESERVED
    address_type: AddressType = AddressType.IPV4

    @classmethod
    def failure(cls, reply: ReplyCode) -> "DetailReply":
        """Failure reply with an all-zero bound address and port."""
        return cls(reply=reply)

    @classmethod
    def success(cls, sockname: tuple) -> "DetailReply":
        """Success reply carrying a socket's bound address.

        Only IPv4 fits the fixed reply layout; any other family is sent as
        0.0.0.0 with the port kept.
        """
        host, port = sockname[0], sockname[1]
        if len(sockname) > 2:  # AF_INET6 adds flowinfo and scope_id
            host = UNSPECIFIED_IPV4
        return cls(reply=ReplyCode.SUCCEEDED, bind_address=host, bind_port=port)


def read_exact(stream: Stream, count: int) -> bytes:
    """Read exactly ``count`` bytes or raise ``ProtocolError(TRUNCATED)``."""
    chunks = []
    remaining = count
    while remaining > 0:
        chunk = stream.recv(remaining)
        if not chunk:
            raise ProtocolError(ProtocolErrorKind.TRUNCATED, f"expected {count} bytes, got {count - remaining}")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_greeting(stream: Stream) -> Greeting:
    """Read a greeting: VER, NMETHODS, METHODS."""
    version, nmethods = GREETING_HEADER.unpack(read_exact(stream, GREETING_HEADER.size))
    if version != SOCKS_VERSION:
        raise ProtocolError(ProtocolErrorKind.UNSUPPORTED_VERSION, f"greeting version {version:#04x}")
    return Greeting(version=version, methods=read_exact(stream, nmethods))


def encode_method_selection(method: int) -> bytes:
    return METHOD_SELECTION.pack(SOCKS_VERSION, method)


def decode_detail_header(stream: Stream) -> DetailHeader:
    """Read the VER, CMD, RSV, ATYP prefix of a detail request."""
    return DetailHeader(*DETAIL_HEADER.unpack(read_exact(stream, DETAIL_HEADER.size)))


def decode_detail_request(stream: Stream, header: DetailHeader | None = None) -> DetailRequest:
    """Read a full detail request.

    Args:
        stream: Source of the request bytes
        header: Header already read with ``decode_detail_header``; read from
            ``stream`` when omitted

    Raises:
        ProtocolError: On a short read, or when the address type gives no way
            to know the address length
    """
    if header is None:
        header = decode_detail_header(stream)

    if header.address_type == AddressType.IPV4:
        address = read_exact(stream, IPV4_LENGTH)
    elif header.address_type == AddressType.DOMAIN:
        (length,) = read_exact(stream, 1)
        address = read_exact(stream, length)
    else:
        raise ProtocolError(ProtocolErrorKind.MALFORMED, f"cannot decode address type {header.address_type:#04x}")

    (port,) = PORT.unpack(read_exact(stream, PORT.size))
    return DetailRequest(
        version=header.version,
        command=header.command,
        reserved=header.reserved,
        address_type=AddressType(header.address_type),
        address=address,
        port=port,
    )


def encode_detail_reply(reply: DetailReply) -> bytes:
    """Encode the fixed 10-byte IPv4 reply layout."""
    return DETAIL_REPLY.pack(
        reply.version,
        reply.reply,
        reply.reserved,
        reply.address_type,
        socket.inet_aton(reply.bind_address),
        reply.bind_port,
    )
