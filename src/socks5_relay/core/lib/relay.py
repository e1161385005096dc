"""Bidirectional byte relay between a client and its destination.

Once the handshake succeeds the relay copies bytes both ways:
- client -> destination runs in a dedicated thread
- destination -> client runs in the calling (connection) thread

Each direction borrows one buffer from the pool for its lifetime and keeps
at most one chunk in flight. A direction stops on EOF, a read error or a
write error. The directions never signal each other. When the client
stops sending, its EOF is passed on to the destination as a half-close and
the destination -> client direction keeps running until the destination
closes. When that direction stops, both sockets are shut down, which makes
the blocked ``recv`` of the client -> destination direction return EOF (or
fail) so it stops too.

Example:
    Relay(client_sock, remote_sock).run()  # returns once both directions end
"""

import contextlib
import socket
import threading
from enum import Enum

from loguru import logger

from socks5_relay.core.lib.buffer_pool import BufferPool, buffer_pool
from socks5_relay.core.lib.proxy_stats import ProxyStats, proxy_stats


class Direction(Enum):
    UPSTREAM = "client -> destination"
    DOWNSTREAM = "destination -> client"


def forward(
    src: socket.socket,
    dst: socket.socket,
    pool: BufferPool,
    stats: ProxyStats,
    direction: Direction,
) -> int:
    """Copy bytes from ``src`` to ``dst`` until EOF or an error.

    Args:
        src: Socket to read from
        dst: Socket to write to
        pool: Pool supplying the scratch buffer
        stats: Counters updated per chunk
        direction: Which way the bytes flow, for stats and logging

    Returns:
        int: Number of bytes forwarded
    """
    total = 0
    with pool.buffer() as buf:
        view = memoryview(buf)
        try:
            while True:
                try:
                    n = src.recv_into(buf)
                except OSError as e:
                    logger.debug(f"{direction.value}: read failed: {e}")
                    break
                if not n:
                    logger.debug(f"{direction.value}: EOF")
                    break

                try:
                    dst.sendall(view[:n])
                except OSError as e:
                    logger.debug(f"{direction.value}: write failed: {e}")
                    break

                total += n
                if direction is Direction.UPSTREAM:
                    stats.update_bytes(sent=n, received=0)
                else:
                    stats.update_bytes(sent=0, received=n)
        finally:
            view.release()
    return total


class Relay:
    """Shuttle bytes between two connected sockets until either side closes."""

    def __init__(
        self,
        client: socket.socket,
        remote: socket.socket,
        pool: BufferPool = buffer_pool,
        stats: ProxyStats = proxy_stats,
    ) -> None:
        self.client = client
        self.remote = remote
        self.pool = pool
        self.stats = stats
        self.sent = 0
        self.received = 0

    def _sever(self) -> None:
        """Shut both sockets down so the other direction wakes up."""
        for sock in (self.client, self.remote):
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)

    def _upstream(self) -> None:
        try:
            self.sent = forward(self.client, self.remote, self.pool, self.stats, Direction.UPSTREAM)
        finally:
            # Half-close: the destination may still be answering
            with contextlib.suppress(OSError):
                self.remote.shutdown(socket.SHUT_WR)

    def run(self) -> None:
        """Relay in both directions; return once both have stopped.

        The sockets are shut down but not closed; closing them is left to
        the owner.
        """
        upstream = threading.Thread(
            target=self._upstream,
            name=f"relay-upstream-{threading.current_thread().name}",
            daemon=True,
        )
        upstream.start()
        try:
            self.received = forward(self.remote, self.client, self.pool, self.stats, Direction.DOWNSTREAM)
        finally:
            self._sever()
            upstream.join()
