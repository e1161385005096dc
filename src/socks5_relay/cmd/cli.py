"""Command-line interface for the SOCKS5 relay.

This module provides the main command-line interface, handling:
- Command-line argument parsing (with environment variable fallbacks)
- Logging setup
- Listen address validation
- Server startup and bind failure reporting

The CLI is built using Typer.

Example:
    # Run from command line:
    $ socks5-relay serve --addr :1080
    $ python -m socks5_relay serve --addr 127.0.0.1:9050 --stats
"""

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console

from socks5_relay import __version__
from socks5_relay.cmd.socks import run_socks_proxy
from socks5_relay.core.lib.buffer_pool import DEFAULT_BUFFER_SIZE, DEFAULT_POOL_CAPACITY
from socks5_relay.core.lib.proxy_server import DEFAULT_LISTEN_ADDRESS
from socks5_relay.core.log_config import LOG_DIR, setup_logging
from socks5_relay.core.proxy import BufferPool, parse_listen_address

console = Console()
app = typer.Typer(help="Transparent TCP relay speaking SOCKS5")


def _validate_address(value: str) -> str:
    try:
        parse_listen_address(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    return value


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]SOCKS5 Relay v{__version__}[/cyan]")


@app.command(name="serve")
def serve(
    addr: str = typer.Option(
        DEFAULT_LISTEN_ADDRESS,
        "--addr",
        "-a",
        envvar="SOCKS5_RELAY_ADDR",
        callback=_validate_address,
        help="Listen address, e.g. :1080 or 127.0.0.1:1080",
    ),
    buffer_size: int = typer.Option(
        DEFAULT_BUFFER_SIZE, "--buffer-size", min=1, envvar="SOCKS5_RELAY_BUFFER_SIZE", help="Relay buffer size in bytes"
    ),
    pool_size: int = typer.Option(
        DEFAULT_POOL_CAPACITY, "--pool-size", min=0, envvar="SOCKS5_RELAY_POOL_SIZE", help="Idle relay buffers kept for reuse"
    ),
    stats: bool = typer.Option(default=False, envvar="SOCKS5_RELAY_STATS", help="Show the live statistics panel"),
    copy_address: bool = typer.Option(
        False, "--copy-address", help="Copy the proxy address to the clipboard"
    ),
    debug: bool = typer.Option(default=False, help="Enable debug logging"),
    log_dir: Path = typer.Option(LOG_DIR, "--log-dir", envvar="SOCKS5_RELAY_LOG_DIR", help="Directory for proxy.log"),
    no_log_file: bool = typer.Option(False, "--no-log-file", help="Only log to the console"),
):
    """Start the SOCKS5 relay."""
    setup_logging(debug=debug, log_dir=None if no_log_file else log_dir)

    host, port = parse_listen_address(addr)
    pool = BufferPool(buffer_size=buffer_size, capacity=pool_size)

    logger.info(f"Starting SOCKS5 relay on {addr}")
    try:
        run_socks_proxy(host, port, pool, show_stats=stats, copy_address=copy_address)
    except OSError as e:
        logger.error(f"Listen failed on {addr}: {e}")
        console.print(f"[red]Could not listen on {addr}: {e}")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
