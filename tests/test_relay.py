import os
import socket
import threading

from socks5_relay.core.lib.buffer_pool import BufferPool
from socks5_relay.core.lib.proxy_stats import ProxyStats
from socks5_relay.core.lib.relay import Direction, Relay, forward

from .conftest import recv_all, recv_exact


def make_pairs():
    client_app, client_side = socket.socketpair()
    remote_side, remote_app = socket.socketpair()
    client_app.settimeout(10)
    remote_app.settimeout(10)
    return client_app, client_side, remote_side, remote_app


def start_relay(client_side, remote_side, pool, stats):
    relay = Relay(client_side, remote_side, pool=pool, stats=stats)
    thread = threading.Thread(target=relay.run, daemon=True)
    thread.start()
    return relay, thread


def test_forward_copies_until_eof():
    src_app, src = socket.socketpair()
    dst, dst_app = socket.socketpair()
    stats = ProxyStats()
    src_app.sendall(b"hello world")
    src_app.shutdown(socket.SHUT_WR)

    assert forward(src, dst, BufferPool(buffer_size=4, capacity=1), stats, Direction.UPSTREAM) == 11
    assert recv_exact(dst_app, 11) == b"hello world"
    assert stats.total_bytes_sent == 11
    assert stats.total_bytes_received == 0
    for sock in (src_app, src, dst, dst_app):
        sock.close()


def test_forward_stops_on_write_error():
    src_app, src = socket.socketpair()
    dst, dst_app = socket.socketpair()
    dst_app.close()
    src_app.sendall(b"data")

    assert forward(src, dst, BufferPool(buffer_size=8, capacity=1), ProxyStats(), Direction.DOWNSTREAM) == 0
    for sock in (src_app, src, dst):
        sock.close()


def test_relay_both_directions_in_order():
    client_app, client_side, remote_side, remote_app = make_pairs()
    pool = BufferPool(buffer_size=1024, capacity=4)
    stats = ProxyStats()
    relay, thread = start_relay(client_side, remote_side, pool, stats)

    upstream = os.urandom(256 * 1024)
    downstream = os.urandom(192 * 1024)
    writer = threading.Thread(target=client_app.sendall, args=(upstream,), daemon=True)
    writer.start()
    assert recv_exact(remote_app, len(upstream)) == upstream
    writer.join()

    writer = threading.Thread(target=remote_app.sendall, args=(downstream,), daemon=True)
    writer.start()
    assert recv_exact(client_app, len(downstream)) == downstream
    writer.join()

    client_app.close()
    remote_app.close()
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert relay.sent == len(upstream)
    assert relay.received == len(downstream)
    assert stats.total_bytes_sent == len(upstream)
    assert stats.total_bytes_received == len(downstream)
    # Both buffers went back to the pool
    assert len(pool) == 2


def test_destination_close_ends_relay():
    client_app, client_side, remote_side, remote_app = make_pairs()
    _, thread = start_relay(client_side, remote_side, BufferPool(capacity=2), ProxyStats())

    remote_app.sendall(b"bye")
    remote_app.close()
    assert recv_all(client_app) == b"bye"
    thread.join(timeout=10)
    assert not thread.is_alive()
    client_app.close()


def test_client_close_propagates_to_destination():
    client_app, client_side, remote_side, remote_app = make_pairs()
    _, thread = start_relay(client_side, remote_side, BufferPool(capacity=2), ProxyStats())

    client_app.sendall(b"last words")
    client_app.close()
    assert recv_all(remote_app) == b"last words"
    remote_app.close()
    thread.join(timeout=10)
    assert not thread.is_alive()


def test_client_half_close_keeps_destination_reply():
    client_app, client_side, remote_side, remote_app = make_pairs()
    relay, thread = start_relay(client_side, remote_side, BufferPool(capacity=2), ProxyStats())

    client_app.sendall(b"request")
    client_app.shutdown(socket.SHUT_WR)
    assert recv_all(remote_app) == b"request"

    remote_app.sendall(b"response")
    remote_app.close()
    assert recv_all(client_app) == b"response"
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert (relay.sent, relay.received) == (7, 8)
    client_app.close()
