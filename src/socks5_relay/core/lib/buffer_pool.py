"""Leaky pool of fixed-size relay buffers.

Each relay direction needs one scratch buffer for its whole lifetime. Under
high connection churn, allocating a fresh one per connection creates a
steady stream of garbage, so buffers are recycled through a bounded pool:

- ``get`` hands out a pooled buffer, or allocates one when the pool is empty
- ``put`` returns a buffer, or drops it when the pool is already full
- ``buffer`` wraps both in a context manager so every exit path returns it

The pool is backed by ``queue.Queue`` and is safe to share between threads.

Example:
    with buffer_pool.buffer() as buf:
        n = sock.recv_into(buf)
"""

import contextlib
import queue
from collections.abc import Iterator
from typing import Final

DEFAULT_BUFFER_SIZE: Final = 4108  # Bytes
DEFAULT_POOL_CAPACITY: Final = 2048  # Buffers


class BufferPool:
    """Bounded, thread-safe pool of equally sized ``bytearray`` buffers."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE, capacity: int = DEFAULT_POOL_CAPACITY) -> None:
        """Initialize an empty pool.

        Args:
            buffer_size: Size in bytes of every buffer handed out
            capacity: Maximum number of idle buffers kept for reuse
        """
        if buffer_size <= 0:
            msg = f"buffer_size must be positive, got {buffer_size}"
            raise ValueError(msg)
        if capacity < 0:
            msg = f"capacity must not be negative, got {capacity}"
            raise ValueError(msg)
        self.buffer_size = buffer_size
        self.capacity = capacity
        # maxsize=0 would mean unbounded, so a zero capacity pool keeps nothing
        self._free: queue.Queue[bytearray] | None = queue.Queue(maxsize=capacity) if capacity else None

    def __len__(self) -> int:
        """Number of idle buffers currently pooled."""
        return self._free.qsize() if self._free else 0

    def get(self) -> bytearray:
        if self._free is not None:
            with contextlib.suppress(queue.Empty):
                return self._free.get_nowait()
        return bytearray(self.buffer_size)

    def put(self, buf: bytearray) -> None:
        if len(buf) != self.buffer_size:
            msg = f"buffer of {len(buf)} bytes does not belong to a pool of {self.buffer_size} byte buffers"
            raise ValueError(msg)
        if self._free is not None:
            with contextlib.suppress(queue.Full):
                self._free.put_nowait(buf)

    @contextlib.contextmanager
    def buffer(self) -> Iterator[bytearray]:
        """Borrow a buffer for the duration of a ``with`` block."""
        buf = self.get()
        try:
            yield buf
        finally:
            self.put(buf)


# Global pool shared by all connections
buffer_pool = BufferPool()
