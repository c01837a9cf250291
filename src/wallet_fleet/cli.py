"""Command-line interface for wallet-fleet.

    wallet-fleet enroll --referral CODE --count 10
    wallet-fleet run
    wallet-fleet check-proxy
    wallet-fleet menu

Global options ``--config PATH`` (YAML file) and ``--debug`` come before the
command.  When a proxy is configured, ``enroll`` and ``run`` test it first
and ask before continuing if it is unreachable (``--yes`` skips the prompt).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING

from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from wallet_fleet.config.settings import AppConfig
from wallet_fleet.datastore.client import Datastore
from wallet_fleet.engine.coordinator import FleetCoordinator
from wallet_fleet.engine.enrollment import EnrollmentService, EnrollmentStatus
from wallet_fleet.engine.reporter import StatsReporter
from wallet_fleet.metrics.collector import FleetMetrics
from wallet_fleet.service.invoker import ActionInvoker
from wallet_fleet.service.issuer import CredentialIssuer
from wallet_fleet.service.transport import ConnectivityReport, check_connectivity
from wallet_fleet.store.identity_store import IdentityStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from wallet_fleet.engine.enrollment import EnrollmentResult

logger = logging.getLogger(__name__)

_ENROLL_STYLES = {
    EnrollmentStatus.PENDING: "yellow",
    EnrollmentStatus.SIGNING: "yellow",
    EnrollmentStatus.REGISTERING: "yellow",
    EnrollmentStatus.SUCCESS: "green",
    EnrollmentStatus.FAILED: "red",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wallet-fleet",
        description="Run a fleet of wallets against the Flow3 node service.",
    )
    parser.add_argument("--config", default="", help="YAML configuration file")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    enroll = subparsers.add_parser("enroll", help="create and register new wallets")
    enroll.add_argument("--referral", default="", help="referral code")
    enroll.add_argument("--count", type=int, required=True, help="number of wallets")
    enroll.add_argument("--yes", action="store_true", help="continue if the proxy check fails")

    run = subparsers.add_parser("run", help="run the poll loop for every stored wallet")
    run.add_argument("--yes", action="store_true", help="continue if the proxy check fails")

    subparsers.add_parser("check-proxy", help="test outbound connectivity")
    subparsers.add_parser("menu", help="interactive menu")
    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_yaml(args.config) if args.config else AppConfig()
    if args.debug:
        config = config.model_copy(update={"debug": True})
    return config


def configure_logging(console: Console, *, debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug)],
        force=True,
    )
    # keep per-request client logging out of the live table
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Proxy check
# ---------------------------------------------------------------------------


def print_report(console: Console, report: ConnectivityReport) -> None:
    if report.reachable:
        console.print(f"[green]Proxy connection successful! IP: {report.ip}[/]")
        return
    console.print(f"[red]Proxy connection failed: {report.error}[/]")
    if report.hint:
        console.print(f"[yellow]{report.hint}[/]")


def cmd_check_proxy(config: AppConfig, console: Console) -> ConnectivityReport:
    console.print("[blue]Testing proxy connection...[/]")
    report = asyncio.run(check_connectivity(config.proxy))
    print_report(console, report)
    return report


def confirm_proxy(config: AppConfig, console: Console, *, assume_yes: bool) -> bool:
    """Run the advisory proxy check; False means the operator declined to go on."""
    if not config.proxy.enabled:
        return True
    report = cmd_check_proxy(config, console)
    if report.reachable or assume_yes:
        return True
    return Confirm.ask(
        "[yellow]Proxy connection failed. Do you want to continue anyway?[/]",
        console=console,
        default=False,
    )


# ---------------------------------------------------------------------------
# Enroll
# ---------------------------------------------------------------------------


def build_enrollment_table(results: Sequence[EnrollmentResult]) -> Table:
    table = Table(title="Flow3 Wallet Generator", header_style="bold blue")
    table.add_column("Index", justify="right")
    table.add_column("Wallet Address", no_wrap=True)
    table.add_column("Status")
    for r in results:
        status = f"{r.status}: {r.error}" if r.error else str(r.status)
        table.add_row(
            str(r.index),
            r.public_id or Text("Generating...", style="yellow"),
            Text(status, style=_ENROLL_STYLES[r.status]),
        )
    return table


async def _enroll(config: AppConfig, console: Console, referral: str, count: int) -> int:
    async with contextlib.AsyncExitStack() as stack:
        datastore = Datastore(config.db)
        stack.push_async_callback(datastore.close)
        await datastore.open()
        issuer = CredentialIssuer(config.service, config.proxy)
        stack.push_async_callback(issuer.close)
        await issuer.connect()
        with Live(console=console, auto_refresh=False) as live:
            service = EnrollmentService(
                IdentityStore(datastore),
                issuer,
                config.service.sign_message,
                on_progress=lambda rows: live.update(build_enrollment_table(rows), refresh=True),
            )
            results = await service.enroll(referral, count)
    return sum(1 for r in results if r.ok)


def enroll_wallets(
    config: AppConfig,
    console: Console,
    referral: str,
    count: int,
    *,
    assume_yes: bool,
) -> bool:
    """Enroll *count* wallets; returns False when enrollment did not run."""
    if count <= 0:
        console.print("[red]Wallet count must be a positive number[/]")
        return False
    if not confirm_proxy(config, console, assume_yes=assume_yes):
        return False
    registered = asyncio.run(_enroll(config, console, referral, count))
    console.print(f"[blue]Signup completed: {registered}/{count} wallets registered.[/]")
    return True


def cmd_enroll(
    config: AppConfig,
    console: Console,
    referral: str,
    count: int,
    *,
    assume_yes: bool,
) -> int:
    ran = enroll_wallets(config, console, referral, count, assume_yes=assume_yes)
    return 1 if not ran and count <= 0 else 0


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


async def _run_fleet(config: AppConfig, console: Console) -> int:
    async with contextlib.AsyncExitStack() as stack:
        datastore = Datastore(config.db)
        stack.push_async_callback(datastore.close)
        await datastore.open()
        issuer = CredentialIssuer(config.service, config.proxy)
        stack.push_async_callback(issuer.close)
        await issuer.connect()
        invoker = ActionInvoker(config.service, config.proxy)
        stack.push_async_callback(invoker.close)
        await invoker.connect()

        metrics = FleetMetrics()
        if config.metrics.enabled:
            metrics.serve(config.metrics.port)
            logger.info("Metrics exposed on port %d", config.metrics.port)

        coordinator = FleetCoordinator(
            IdentityStore(datastore),
            invoker,
            issuer,
            config,
            reporter=StatsReporter(console),
            metrics=metrics,
        )
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler is unavailable on Windows; Ctrl+C then cancels the run
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, coordinator.request_stop)
                stack.callback(loop.remove_signal_handler, sig)
        return await coordinator.run()


def run_fleet(config: AppConfig, console: Console, *, assume_yes: bool) -> int:
    """Run the fleet until interrupted; returns how many wallets were run."""
    if not confirm_proxy(config, console, assume_yes=assume_yes):
        return 0
    try:
        return asyncio.run(_run_fleet(config, console))
    except KeyboardInterrupt:
        console.print("[blue]Stopping node requests...[/]")
        return 0


def cmd_run(config: AppConfig, console: Console, *, assume_yes: bool) -> int:
    run_fleet(config, console, assume_yes=assume_yes)
    return 0


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------


def cmd_menu(config: AppConfig, console: Console) -> int:
    while True:
        console.print("\n[bold blue]=== Flow3 Bot ===[/]")
        console.print("[blue]1. Signup Wallet[/]")
        console.print("[blue]2. Run Node[/]")
        console.print("[blue]3. Test Proxy Connection[/]")
        console.print("[blue]4. Exit[/]")
        option = Prompt.ask(
            "[blue]Choose an option[/]",
            console=console,
            choices=["1", "2", "3", "4"],
        )
        if option == "1":
            referral = Prompt.ask("[blue]Enter referral code[/]", console=console, default="")
            count = IntPrompt.ask("[blue]How many wallets to generate?[/]", console=console)
            ran = enroll_wallets(config, console, referral, count, assume_yes=False)
            if ran and Confirm.ask("[blue]Do you want to run Nodes now?[/]", console=console):
                return cmd_run(config, console, assume_yes=True)
        elif option == "2":
            if run_fleet(config, console, assume_yes=False):
                return 0
        elif option == "3":
            cmd_check_proxy(config, console)
            Prompt.ask("[blue]Press Enter to continue...[/]", console=console, default="")
        else:
            console.print("[blue]Exiting...[/]")
            return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()
    try:
        config = load_config(args)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/]\n{exc}")
        return 1
    configure_logging(console, debug=config.debug)

    if args.command == "enroll":
        return cmd_enroll(config, console, args.referral, args.count, assume_yes=args.yes)
    if args.command == "run":
        return cmd_run(config, console, assume_yes=args.yes)
    if args.command == "check-proxy":
        cmd_check_proxy(config, console)
        return 0
    return cmd_menu(config, console)
