"""Core relay library components."""

from .buffer_pool import BufferPool, buffer_pool
from .negotiator import NegotiationState, Negotiator
from .proxy_server import SocksProxy, create_proxy_server, parse_listen_address, run_server
from .proxy_stats import ProxyStats, proxy_stats
from .relay import Relay
from .socks_handler import SocksHandler

__all__ = [
    "buffer_pool",
    "BufferPool",
    "create_proxy_server",
    "NegotiationState",
    "Negotiator",
    "parse_listen_address",
    "proxy_stats",
    "ProxyStats",
    "Relay",
    "run_server",
    "SocksHandler",
    "SocksProxy",
]
