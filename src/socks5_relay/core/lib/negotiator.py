"""SOCKS5 handshake negotiation for a single client connection.

The negotiator runs the two-step handshake of RFC 1928 as a forward-only
state machine:

    AWAITING_GREETING -> METHOD_CHOSEN -> AWAITING_DETAIL_REQUEST -> RESOLVED
                      \\____________________________________________-> REJECTED

Only the "no authentication required" method and the CONNECT command are
accepted, with IPv4 or domain-name destinations. Policy refusals write the
matching SOCKS5 reply before raising ``NegotiationError``. Malformed input
raises ``ProtocolError`` without writing anything, since the byte stream can
no longer be trusted.

Example:
    negotiator = Negotiator(client_socket)
    destination = negotiator.negotiate()  # "93.184.216.34:80"
"""

import socket
from enum import Enum, auto

from loguru import logger

from socks5_relay.core.exceptions import (
    NegotiationError,
    NegotiationErrorKind,
    ProtocolError,
    ProtocolErrorKind,
)
from socks5_relay.core.lib import wire
from socks5_relay.core.lib.wire import AddressType, AuthMethod, Command, DetailReply, ReplyCode

SUPPORTED_ADDRESS_TYPES = frozenset({AddressType.IPV4, AddressType.DOMAIN})


class NegotiationState(Enum):
    """Handshake states, in the order they are entered."""

    AWAITING_GREETING = auto()
    METHOD_CHOSEN = auto()
    AWAITING_DETAIL_REQUEST = auto()
    RESOLVED = auto()
    REJECTED = auto()


# Allowed transitions; RESOLVED and REJECTED are terminal
TRANSITIONS: dict[NegotiationState, frozenset[NegotiationState]] = {
    NegotiationState.AWAITING_GREETING: frozenset(
        {NegotiationState.METHOD_CHOSEN, NegotiationState.REJECTED}
    ),
    NegotiationState.METHOD_CHOSEN: frozenset(
        {NegotiationState.AWAITING_DETAIL_REQUEST, NegotiationState.REJECTED}
    ),
    NegotiationState.AWAITING_DETAIL_REQUEST: frozenset(
        {NegotiationState.RESOLVED, NegotiationState.REJECTED}
    ),
    NegotiationState.RESOLVED: frozenset(),
    NegotiationState.REJECTED: frozenset(),
}


class Negotiator:
    """Drive the SOCKS5 handshake on one connected client socket."""

    def __init__(self, conn: socket.socket) -> None:
        """Initialize the negotiator.

        Args:
            conn: Connected client socket; only ``recv`` and ``sendall`` are used
        """
        self.conn = conn
        self.state = NegotiationState.AWAITING_GREETING
        self.greeting: wire.Greeting | None = None
        self.request: wire.DetailRequest | None = None

    def _advance(self, state: NegotiationState) -> None:
        if state not in TRANSITIONS[self.state]:
            msg = f"illegal negotiation transition {self.state.name} -> {state.name}"
            raise RuntimeError(msg)
        self.state = state

    def _select_method(self, method: int) -> None:
        self.conn.sendall(wire.encode_method_selection(method))

    def _reply(self, code: ReplyCode) -> None:
        self.conn.sendall(wire.encode_detail_reply(DetailReply.failure(code)))

    def negotiate(self) -> str:
        """Run the handshake to completion.

        Returns:
            str: Destination as ``a.b.c.d:port`` or ``name:port``

        Raises:
            ProtocolError: The client sent malformed or truncated data
            NegotiationError: The request was refused; the reply is already sent
        """
        try:
            return self._negotiate()
        except (ProtocolError, NegotiationError):
            if self.state is not NegotiationState.REJECTED:
                self._advance(NegotiationState.REJECTED)
            raise

    def _negotiate(self) -> str:
        self.greeting = wire.decode_greeting(self.conn)
        if not self.greeting.offers(AuthMethod.NO_AUTH):
            self._advance(NegotiationState.REJECTED)
            self._select_method(AuthMethod.NO_ACCEPTABLE)
            raise NegotiationError(
                NegotiationErrorKind.NO_ACCEPTABLE_METHOD,
                f"client offered {self.greeting.methods.hex() or 'nothing'}",
            )

        self._advance(NegotiationState.METHOD_CHOSEN)
        self._select_method(AuthMethod.NO_AUTH)
        self._advance(NegotiationState.AWAITING_DETAIL_REQUEST)

        header = wire.decode_detail_header(self.conn)
        if header.version != wire.SOCKS_VERSION:
            raise ProtocolError(ProtocolErrorKind.UNSUPPORTED_VERSION, f"request version {header.version:#04x}")
        if header.reserved != wire.RESERVED:
            raise ProtocolError(ProtocolErrorKind.MALFORMED, f"reserved byte {header.reserved:#04x}")

        if header.command != Command.CONNECT:
            self._advance(NegotiationState.REJECTED)
            self._reply(ReplyCode.COMMAND_NOT_SUPPORTED)
            raise NegotiationError(NegotiationErrorKind.UNSUPPORTED_COMMAND, f"command {header.command:#04x}")

        if header.address_type not in SUPPORTED_ADDRESS_TYPES:
            self._advance(NegotiationState.REJECTED)
            self._reply(ReplyCode.ADDRESS_TYPE_NOT_SUPPORTED)
            raise NegotiationError(
                NegotiationErrorKind.UNSUPPORTED_ADDRESS_TYPE, f"address type {header.address_type:#04x}"
            )

        self.request = wire.decode_detail_request(self.conn, header)
        self._advance(NegotiationState.RESOLVED)
        logger.debug(f"Negotiated CONNECT to {self.request.destination}")
        return self.request.destination
