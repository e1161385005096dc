"""Custom exceptions for the relay.

Every exception here is local to a single client connection. The connection
supervisor catches them, tears the connection down and logs the outcome; none
of them ever reaches the listener loop.

- ``ProtocolError``: the client sent bytes that cannot be trusted (wrong
  version, short read, bad reserved byte). No reply is sent.
- ``NegotiationError``: a well-formed request the relay refuses. The matching
  SOCKS5 reply has already been written when this is raised.
- ``DialError``: the destination could not be reached. No reply is sent.

Example:
    try:
        destination = Negotiator(sock).negotiate()
    except NegotiationError as e:
        logger.info(f"Rejected: {e}")
"""

from enum import Enum


class ProxyError(Exception):
    """Base exception for relay errors."""


class ProtocolErrorKind(Enum):
    """Why the client's bytes were rejected."""

    UNSUPPORTED_VERSION = "unsupported version"
    TRUNCATED = "truncated"
    MALFORMED = "malformed"


class ProtocolError(ProxyError):
    """Raised when wire data is malformed or truncated."""

    def __init__(self, kind: ProtocolErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class NegotiationErrorKind(Enum):
    """Which policy check refused the request."""

    NO_ACCEPTABLE_METHOD = "no acceptable method"
    UNSUPPORTED_COMMAND = "unsupported command"
    UNSUPPORTED_ADDRESS_TYPE = "unsupported address type"


class NegotiationError(ProxyError):
    """Raised when a well-formed request is refused by policy."""

    def __init__(self, kind: NegotiationErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class DialError(ProxyError):
    """Raised when the destination cannot be connected to."""

    def __init__(self, destination: str, reason: str = "") -> None:
        self.destination = destination
        super().__init__(f"connect to {destination} failed: {reason}" if reason else f"connect to {destination} failed")
