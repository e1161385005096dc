"""SOCKS5 relay command interface.

This module starts the relay for the CLI:
- Binding the listener
- Optionally copying the proxy address to the clipboard
- Optionally starting the live statistics panel
- Serving until interrupted

Example:
    # Serve on all interfaces with the statistics panel
    run_socks_proxy("", 1080, show_stats=True)
"""

import pyperclip
from loguru import logger
from rich.console import Console

from socks5_relay.core.lib.proxy_ui import create_proxy_ui
from socks5_relay.core.proxy import BufferPool, create_proxy_server, run_server

console = Console()


def copy_to_clipboard(address: str) -> None:
    try:
        pyperclip.copy(address)
        console.print(f"[bold green]Proxy address {address} copied to clipboard")
    except pyperclip.PyperclipException as e:
        console.print(f"[yellow]Could not copy to clipboard: {e}")


def run_socks_proxy(
    host: str,
    port: int,
    pool: BufferPool,
    *,
    show_stats: bool = False,
    copy_address: bool = False,
) -> None:
    """Bind and run the relay until interrupted.

    Raises:
        OSError: If the listening socket cannot be bound
    """
    server = create_proxy_server(host, port, pool)
    bound_host, bound_port = server.server_address[:2]

    if copy_address:
        copy_to_clipboard(f"{bound_host}:{bound_port}")

    ui = create_proxy_ui(bound_host, bound_port) if show_stats else None
    if ui is not None:
        ui.start()
    else:
        console.print(f"[green]SOCKS5 relay listening on {bound_host}:{bound_port}")

    logger.debug(f"Buffer pool: {pool.capacity} x {pool.buffer_size} bytes")
    try:
        run_server(server)
    finally:
        if ui is not None:
            ui.stop()
