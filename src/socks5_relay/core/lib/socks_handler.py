"""Per-connection supervisor for the SOCKS5 relay.

``SocksHandler`` owns the whole life of one accepted client connection:

1. Count the connection as active
2. Run the handshake negotiator
3. Dial the requested destination over plain TCP
4. Send the success reply carrying the outbound socket's bound address
5. Relay bytes both ways until either side closes
6. Close both sockets and count the connection as ended

A failure at any step ends only this connection. Negotiation failures
have already produced their SOCKS5 reply; protocol violations and dial
failures close the client without one. Cleanup runs in ``finally`` blocks,
so unexpected exceptions tear the connection down the same way.

Example:
    # The handler is automatically used by the SocksProxy server class
    server = SocksProxy(("", 1080), SocksHandler)
    server.serve_forever()
"""

import contextlib
import socket
import socketserver

from loguru import logger

from socks5_relay.core.exceptions import DialError, NegotiationError, ProtocolError
from socks5_relay.core.lib import wire
from socks5_relay.core.lib.buffer_pool import BufferPool, buffer_pool
from socks5_relay.core.lib.negotiator import Negotiator
from socks5_relay.core.lib.proxy_stats import proxy_stats
from socks5_relay.core.lib.relay import Relay


def split_destination(destination: str) -> tuple[str, int]:
    """Split ``host:port`` on the last colon."""
    host, _, port = destination.rpartition(":")
    return host, int(port)


def dial(destination: str) -> socket.socket:
    """Open a TCP connection to ``host:port``.

    Domain names are resolved here by the system resolver. No timeout is
    applied.

    Raises:
        DialError: If the name does not resolve or no address accepts
    """
    host, port = split_destination(destination)
    try:
        return socket.create_connection((host, port))
    except (OSError, UnicodeError) as e:
        raise DialError(destination, str(e)) from e


def close_quietly(sock: socket.socket) -> None:
    with contextlib.suppress(OSError):
        sock.close()


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle one incoming SOCKS5 connection."""

    @property
    def buffer_pool(self) -> BufferPool:
        return getattr(self.server, "buffer_pool", buffer_pool)

    def _peer(self) -> str:
        host, port = self.client_address[:2]
        return f"{host}:{port}"

    def handle(self) -> None:
        """Supervise the connection from handshake to teardown."""
        peer = self._peer()
        logger.info(f"Accepted connection from {peer} (active: {proxy_stats.connection_started()})")
        remote: socket.socket | None = None
        try:
            destination = Negotiator(self.request).negotiate()

            logger.info(f"{peer}: dialing {destination}")
            remote = dial(destination)
            bound = remote.getsockname()
            logger.info(f"{peer}: connected to {destination} via {bound[0]}:{bound[1]}")

            self.request.sendall(wire.encode_detail_reply(wire.DetailReply.success(bound)))

            relay = Relay(self.request, remote, pool=self.buffer_pool, stats=proxy_stats)
            relay.run()
            logger.debug(f"{peer}: relay finished ({relay.sent} bytes sent, {relay.received} bytes received)")
        except ProtocolError as e:
            logger.warning(f"{peer}: protocol error: {e}")
        except NegotiationError as e:
            logger.info(f"{peer}: negotiation rejected: {e}")
        except DialError as e:
            logger.error(f"{peer}: {e}")
        except OSError as e:
            logger.error(f"{peer}: socket error: {e}")
        except Exception:
            logger.exception(f"{peer}: unexpected error")
        finally:
            if remote is not None:
                close_quietly(remote)
            close_quietly(self.request)
            logger.info(f"Closed connection from {peer} (active: {proxy_stats.connection_ended()})")
