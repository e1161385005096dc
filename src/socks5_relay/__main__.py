"""Allow ``python -m socks5_relay``."""

from socks5_relay.cmd.cli import app

app(prog_name="socks5-relay")
