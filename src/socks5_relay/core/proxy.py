"""Public entry points of the relay core.

Callers outside ``socks5_relay.core`` only need to parse a listen address,
bind a server and run it; everything else stays behind this facade.

Example:
    from socks5_relay.core.proxy import create_proxy_server, parse_listen_address, run_server

    host, port = parse_listen_address(":1080")
    run_server(create_proxy_server(host, port))
"""

from .lib import BufferPool, create_proxy_server, parse_listen_address, run_server

__all__ = ["BufferPool", "create_proxy_server", "parse_listen_address", "run_server"]
