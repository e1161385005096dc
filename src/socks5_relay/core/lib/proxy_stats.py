"""Connection and traffic statistics for the relay.

This module holds the process-wide counters of the relay:
- Active connection count (incremented on accept, decremented on teardown)
- Total bytes relayed in each direction
- Recent transfer history for bandwidth estimates
- Uptime

The counters are only read for logging and the statistics panel; nothing
is ever refused because of them. Every mutation happens under one lock, so
handler threads can update them concurrently.

Example:
    from socks5_relay.core.lib.proxy_stats import proxy_stats

    active = proxy_stats.connection_started()
    proxy_stats.update_bytes(sent=1024, received=0)
"""

import threading
import time
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import Final

BANDWIDTH_WINDOW: Final = 5  # Seconds
HISTORY_LENGTH: Final = 60  # One bucket per second


class ProxyStats:
    """Thread-safe counters for the relay."""

    def __init__(self) -> None:
        self.active_connections = 0
        self.total_connections = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        self.bandwidth_history: deque[tuple[int, int]] = deque(maxlen=HISTORY_LENGTH)  # (second, bytes)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def connection_started(self) -> int:
        """Count a newly accepted connection.

        Returns:
            int: Active connections including this one
        """
        with self._lock:
            self.active_connections += 1
            self.total_connections += 1
            return self.active_connections

    def connection_ended(self) -> int:
        """Count a fully torn down connection.

        Returns:
            int: Active connections remaining
        """
        with self._lock:
            self.active_connections -= 1
            return self.active_connections

    def update_bytes(self, sent: int, received: int) -> None:
        """Record relayed bytes.

        Args:
            sent: Bytes forwarded from a client to its destination
            received: Bytes forwarded from a destination back to its client
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            second = int(time.monotonic())
            if self.bandwidth_history and self.bandwidth_history[-1][0] == second:
                self.bandwidth_history[-1] = (second, self.bandwidth_history[-1][1] + sent + received)
            else:
                self.bandwidth_history.append((second, sent + received))

    def get_bandwidth(self) -> float:
        """Average relayed bytes per second over the last few seconds."""
        with self._lock:
            cutoff = int(time.monotonic()) - BANDWIDTH_WINDOW
            total = sum(bytes_ for second, bytes_ in self.bandwidth_history if second > cutoff)
        return total / BANDWIDTH_WINDOW

    @property
    def total_bytes(self) -> int:
        return self.total_bytes_sent + self.total_bytes_received

    @property
    def uptime(self) -> timedelta:
        return datetime.now(tz=UTC) - self.start_time


# Global statistics object
proxy_stats = ProxyStats()
