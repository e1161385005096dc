"""Live statistics panel for the relay.

This module renders a small terminal dashboard with rich, refreshed from a
daemon thread while the listener runs in the main thread. It shows:
- Listen address
- Bandwidth over the last few seconds
- Active and total connections
- Bytes relayed in each direction
- Uptime and resident memory of the process (via psutil)

Example:
    ui = create_proxy_ui("0.0.0.0", 1080)
    ui.start()
    ...
    ui.stop()
"""

import threading
import time
from typing import Final

import psutil
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from .proxy_stats import ProxyStats, proxy_stats

console = Console()

SIZE_UNITS: Final = ("B", "KB", "MB", "GB", "TB")
BANDWIDTH_THRESHOLD: Final = 100  # Bytes, ignore smaller changes to avoid jitter
UI_JOIN_TIMEOUT: Final = 2.0  # Seconds


def format_bytes(bytes_: float) -> str:
    """Format a byte count with a binary unit, e.g. ``1.5 KB``."""
    for unit in SIZE_UNITS[:-1]:
        if bytes_ < 1024:
            return f"{bytes_:.1f} {unit}"
        bytes_ /= 1024
    return f"{bytes_:.1f} {SIZE_UNITS[-1]}"


class ProxyUI:
    """Render relay statistics in a live terminal panel."""

    def __init__(self, host: str, port: int, stats: ProxyStats = proxy_stats) -> None:
        self.host = host or "0.0.0.0"
        self.port = port
        self.stats = stats
        self._refresh_rate = 0.5
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_bandwidth = 0.0
        self._spinner = Spinner("dots", text="")
        self._start_time = time.monotonic()
        self._process = psutil.Process()

    def _generate_table(self) -> Table:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", no_wrap=True)

        bandwidth = self.stats.get_bandwidth()
        if abs(bandwidth - self._last_bandwidth) > BANDWIDTH_THRESHOLD:
            self._last_bandwidth = bandwidth
        spinner_text = self._spinner.render(time.monotonic() - self._start_time)

        uptime = int(self.stats.uptime.total_seconds())
        hours, rest = divmod(uptime, 3600)
        minutes, seconds = divmod(rest, 60)

        table.add_row("Bandwidth", Text.assemble(spinner_text, f" {format_bytes(self._last_bandwidth)}/s"))
        table.add_row("Active Connections", str(self.stats.active_connections))
        table.add_row("Total Connections", str(self.stats.total_connections))
        table.add_row("Sent to Destinations", format_bytes(self.stats.total_bytes_sent))
        table.add_row("Received from Destinations", format_bytes(self.stats.total_bytes_received))
        table.add_row("Uptime", f"{hours:02d}:{minutes:02d}:{seconds:02d}")
        table.add_row("Memory", format_bytes(self._process.memory_info().rss))
        return table

    def _generate_display(self) -> Panel:
        title = Text(f"SOCKS5 Relay: {self.host}:{self.port}", style="bold cyan")
        return Panel(
            self._generate_table(),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> None:
        """Refresh the panel from a daemon thread."""
        self._thread = threading.Thread(target=self.run, name="proxy-ui", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop refreshing and wait for the panel thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=UI_JOIN_TIMEOUT)

    def run(self) -> None:
        """Refresh the panel until ``stop`` is called."""
        with Live(
            self._generate_display(),
            console=console,
            refresh_per_second=4,
            transient=False,
            auto_refresh=False,
        ) as live:
            while self.running:
                live.update(self._generate_display(), refresh=True)
                self._stop_event.wait(self._refresh_rate)


def create_proxy_ui(host: str, port: int) -> ProxyUI:
    """Create (but do not start) the statistics panel."""
    return ProxyUI(host, port)
