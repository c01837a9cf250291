"""Statistics reporter — renders fleet snapshots as a live ``rich`` table."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from wallet_fleet.engine.stats import WalletStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from wallet_fleet.engine.stats import StatsSnapshot

_STATUS_STYLES: dict[WalletStatus, str] = {
    WalletStatus.READY: "blue",
    WalletStatus.SENDING: "yellow",
    WalletStatus.SUCCESS: "green",
    WalletStatus.PARSE_ERROR: "yellow",
    WalletStatus.TOKEN_EXPIRED: "yellow",
    WalletStatus.REFRESHING: "cyan",
    WalletStatus.REFRESHED: "green",
    WalletStatus.REFRESH_FAILED: "red",
    WalletStatus.FAILED: "red",
}


def build_table(snapshots: Sequence[StatsSnapshot]) -> Table:
    """Build the per-wallet stats table."""
    table = Table(header_style="bold blue")
    table.add_column("Wallet", width=20, no_wrap=True)
    table.add_column("Requests", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Total Time", justify="right")
    table.add_column("Last Status", no_wrap=True)
    for snap in snapshots:
        table.add_row(
            snap.short_id,
            str(snap.requests_sent),
            str(snap.successes),
            str(snap.failures),
            f"{snap.server_time:.2f}",
            Text(snap.status_text, style=_STATUS_STYLES.get(snap.status, "")),
        )
    return table


def build_view(snapshots: Sequence[StatsSnapshot], *, now: datetime | None = None) -> Group:
    """Header lines plus the stats table, as one renderable."""
    now = now or datetime.now()
    header = Text(f"Flow3 Node Runner - {len(snapshots)} nodes", style="bold blue")
    updated = Text(f"Last update: {now.strftime('%H:%M:%S')}", style="blue")
    return Group(header, updated, build_table(snapshots))


class StatsReporter:
    """Redraws the fleet view in place on every render tick.

    Usage::

        reporter = StatsReporter(console)
        reporter.start()
        reporter.render(snapshots)  # every tick
        reporter.stop()
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._live: Live | None = None

    def start(self) -> None:
        """Take over the terminal for live rendering."""
        if self._live is not None:
            return
        self._live = Live(console=self._console, auto_refresh=False)
        self._live.start()

    def render(self, snapshots: Sequence[StatsSnapshot]) -> None:
        """Draw one frame from immutable snapshots."""
        view = build_view(snapshots)
        if self._live is not None:
            self._live.update(view, refresh=True)
        else:
            self._console.print(view)

    def stop(self) -> None:
        """Release the terminal; the last frame stays on screen."""
        if self._live is not None:
            self._live.stop()
            self._live = None

    def report_started(self, count: int) -> None:
        self._console.print(f"[bold blue]Running {count} nodes...[/]")

    def report_empty(self) -> None:
        self._console.print("[yellow]No wallets found. Create wallets first.[/]")

    def report_stopping(self) -> None:
        self._console.print("[blue]Stopping node requests...[/]")
