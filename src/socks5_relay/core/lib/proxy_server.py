"""Threaded TCP listener for the SOCKS5 relay.

This module accepts client connections and hands each one to a
``SocksHandler`` running in its own thread. It also provides:
- Listen address parsing (``host:port``, ``:port``, ``[v6host]:port``)
- Creation of the bound server with address reuse
- A blocking serve loop with clean shutdown

Accept errors never stop the listener; only a failure to bind does, and
that is left for the caller to report.

Example:
    server = create_proxy_server("", 1080)
    run_server(server)
"""

import contextlib
import socket
import socketserver
from typing import Final

from loguru import logger

from socks5_relay.core.lib.buffer_pool import BufferPool, buffer_pool

from .socks_handler import SocksHandler

DEFAULT_LISTEN_ADDRESS: Final = ":1080"
MAX_PORT: Final = 65535


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS5 relay server: one daemon thread per accepted connection."""

    allow_reuse_address = True
    daemon_threads = True
    # Handler threads are independent; nothing joins them on close
    block_on_close = False
    request_queue_size = 100

    def __init__(
        self,
        server_address: tuple[str, int],
        handler_class: type[socketserver.BaseRequestHandler] = SocksHandler,
        pool: BufferPool = buffer_pool,
    ) -> None:
        self.buffer_pool = pool
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, handler_class)

    def handle_error(self, request, client_address) -> None:
        """Log errors escaping a handler instead of printing to stderr."""
        logger.exception(f"Error while handling {client_address}")

    def shutdown_request(self, request) -> None:
        # SocksHandler already closed the socket
        with contextlib.suppress(OSError):
            request.close()


def parse_listen_address(address: str) -> tuple[str, int]:
    """Parse a listen address such as ``:1080`` or ``127.0.0.1:1080``.

    Args:
        address: ``host:port``; an empty host listens on all interfaces and
            IPv6 hosts go in brackets

    Returns:
        tuple: (host, port)

    Raises:
        ValueError: If the address has no port or the port is out of range
    """
    host, sep, port_text = address.rpartition(":")
    if not sep:
        msg = f"missing port in address {address!r}"
        raise ValueError(msg)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port = int(port_text)
    except ValueError:
        msg = f"invalid port {port_text!r} in address {address!r}"
        raise ValueError(msg) from None
    if not 0 <= port <= MAX_PORT:
        msg = f"port {port} out of range in address {address!r}"
        raise ValueError(msg)
    return host, port


def create_proxy_server(host: str, port: int, pool: BufferPool = buffer_pool) -> SocksProxy:
    """Bind a new relay server.

    Raises:
        OSError: If the listening socket cannot be bound
    """
    server = SocksProxy((host, port), SocksHandler, pool)
    bound_host, bound_port = server.server_address[:2]
    logger.info(f"Listening on {bound_host}:{bound_port}")
    return server


def run_server(server: SocksProxy) -> None:
    """Serve until interrupted, then close the listening socket."""
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        with contextlib.suppress(Exception):
            server.server_close()
            logger.info("Server closed")
