"""Fleet coordinator — one poll loop per wallet plus a render tick.

Lifecycle::

    coordinator = FleetCoordinator(store, invoker, issuer, config, reporter=reporter)
    count = await coordinator.run()   # blocks until request_stop()

Shutdown stops the render tick first, then lets in-flight requests finish
within ``poll.shutdown_grace`` seconds before cancelling what is left.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from wallet_fleet.engine.poll_loop import PollLoop, wait_or_stop

if TYPE_CHECKING:
    from wallet_fleet.config.settings import AppConfig
    from wallet_fleet.engine.reporter import StatsReporter
    from wallet_fleet.engine.stats import StatsSnapshot
    from wallet_fleet.metrics.collector import FleetMetrics
    from wallet_fleet.service.invoker import ActionInvoker
    from wallet_fleet.service.issuer import CredentialIssuer
    from wallet_fleet.store.identity_store import IdentityStore

logger = logging.getLogger(__name__)


class FleetCoordinator:
    """Starts, observes and stops the fleet of poll loops."""

    def __init__(
        self,
        store: IdentityStore,
        invoker: ActionInvoker,
        issuer: CredentialIssuer,
        config: AppConfig,
        *,
        reporter: StatsReporter | None = None,
        metrics: FleetMetrics | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._invoker = invoker
        self._issuer = issuer
        self._config = config
        self._reporter = reporter
        self._metrics = metrics
        self._rng = rng or random.Random()
        self._stop = asyncio.Event()
        self._loops: list[PollLoop] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._render_task: asyncio.Task[None] | None = None

    @property
    def loops(self) -> list[PollLoop]:
        return list(self._loops)

    @property
    def is_running(self) -> bool:
        return bool(self._tasks) and not self._stop.is_set()

    def snapshot(self) -> list[StatsSnapshot]:
        """Immutable copy of every wallet's stats, in load order."""
        return [loop.stats.snapshot() for loop in self._loops]

    def request_stop(self) -> None:
        """Ask the fleet to shut down; safe to call from a signal handler."""
        if not self._stop.is_set():
            logger.info("Stop requested")
            self._stop.set()

    async def run(self) -> int:
        """Run every stored wallet until :meth:`request_stop` is called.

        Returns:
            The number of wallets that were run; 0 when the store is empty,
            in which case nothing is started.
        """
        identities = await self._store.load_all()
        if not identities:
            logger.info("No wallets found, nothing to run")
            if self._reporter:
                self._reporter.report_empty()
            return 0

        self._loops = [
            PollLoop(
                identity,
                invoker=self._invoker,
                issuer=self._issuer,
                store=self._store,
                poll=self._config.poll,
                service=self._config.service,
                metrics=self._metrics,
                rng=random.Random(self._rng.random()),
            )
            for identity in identities
        ]
        count = len(self._loops)
        if self._reporter:
            self._reporter.report_started(count)
            self._reporter.start()

        self._tasks = [
            asyncio.create_task(loop.run(self._stop), name=f"poll-{loop.identity.short_id}")
            for loop in self._loops
        ]
        self._render_task = asyncio.create_task(self._render_loop(), name="render")
        if self._metrics:
            self._metrics.set_active_loops(count)
        logger.info("Fleet started with %d wallets", count)

        try:
            await self._stop.wait()
        finally:
            await self._shutdown()
        return count

    async def _render_loop(self) -> None:
        interval = self._config.poll.render_interval
        while True:
            if self._reporter:
                self._reporter.render(self.snapshot())
            if await wait_or_stop(self._stop, interval):
                break

    async def _shutdown(self) -> None:
        self._stop.set()
        if self._render_task is not None:
            self._render_task.cancel()
            await asyncio.gather(self._render_task, return_exceptions=True)
            self._render_task = None
        if self._reporter:
            self._reporter.report_stopping()

        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self._config.poll.shutdown_grace)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled %d poll loops still in flight", len(pending))
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for r in results:
                if isinstance(r, Exception):
                    logger.error("Poll loop error during shutdown: %s", r)
            self._tasks.clear()

        if self._reporter:
            self._reporter.render(self.snapshot())
            self._reporter.stop()

        if self._metrics:
            self._metrics.set_active_loops(0)
        logger.info("Fleet stopped")
