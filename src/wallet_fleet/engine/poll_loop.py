"""Per-wallet poll loop — invoke, self-heal expired credentials, sleep, repeat.

One :class:`PollLoop` drives one wallet.  A cycle moves the wallet through
``IDLE -> INVOKING -> IDLE`` or, when the credential has expired,
``IDLE -> INVOKING -> AWAITING_REFRESH -> IDLE``.  A cycle is only started
from ``IDLE``, so at most one refresh per wallet can ever be in flight.

Nothing that happens inside a cycle stops the loop; only the shared stop
event does.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from wallet_fleet.engine.stats import LoopState, WalletStats, WalletStatus
from wallet_fleet.errors.fleet_errors import (
    FleetError,
    MalformedResponseError,
    StoreError,
    UnauthorizedError,
)
from wallet_fleet.keys.signer import sign
from wallet_fleet.service.invoker import extract_elapsed

if TYPE_CHECKING:
    from wallet_fleet.config.settings import PollConfig, ServiceConfig
    from wallet_fleet.metrics.collector import FleetMetrics
    from wallet_fleet.service.invoker import ActionInvoker
    from wallet_fleet.service.issuer import CredentialIssuer
    from wallet_fleet.store.identity_store import Identity, IdentityStore

logger = logging.getLogger(__name__)


async def wait_or_stop(stop: asyncio.Event, delay: float) -> bool:
    """Sleep for *delay* seconds unless *stop* is set first.

    Returns:
        True if the stop event was set.
    """
    if stop.is_set():
        return True
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True


class PollLoop:
    """Repeatedly performs the action for one wallet.

    Usage::

        loop = PollLoop(identity, invoker=..., issuer=..., store=...,
                        poll=config.poll, service=config.service)
        await loop.run(stop_event)
    """

    def __init__(
        self,
        identity: Identity,
        *,
        invoker: ActionInvoker,
        issuer: CredentialIssuer,
        store: IdentityStore,
        poll: PollConfig,
        service: ServiceConfig,
        metrics: FleetMetrics | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._identity = identity
        self._invoker = invoker
        self._issuer = issuer
        self._store = store
        self._poll = poll
        self._service = service
        self._metrics = metrics
        self._rng = rng or random.Random()
        self._stats = WalletStats(public_id=identity.public_id, short_id=identity.short_id)

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def stats(self) -> WalletStats:
        return self._stats

    def next_delay(self) -> float:
        """Draw the jittered pause before the next cycle."""
        return self._rng.uniform(self._poll.min_delay, self._poll.max_delay)

    async def run(self, stop: asyncio.Event) -> None:
        """Run cycles until *stop* is set.

        The first cycle fires immediately unless ``initial_stagger`` is
        configured, in which case it waits a random fraction of it.
        """
        if self._poll.initial_stagger > 0:
            stagger = self._rng.uniform(0, self._poll.initial_stagger)
            if await wait_or_stop(stop, stagger):
                return
        while not stop.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Poll cycle for %s failed", self._identity.short_id)
                self._stats.set_status(WalletStatus.FAILED, "internal error")
            if await wait_or_stop(stop, self.next_delay()):
                break
        logger.debug("Poll loop for %s stopped", self._identity.short_id)

    async def run_cycle(self) -> WalletStatus:
        """Perform one invoke (and, if needed, refresh) cycle.

        Returns:
            The wallet's status once the cycle has finished.
        """
        stats = self._stats
        if stats.state is not LoopState.IDLE:
            # refresh still in flight; skip this tick
            return stats.status

        stats.state = LoopState.INVOKING
        stats.requests_sent += 1
        stats.set_status(WalletStatus.SENDING)
        try:
            await self._invoke_once()
        finally:
            stats.state = LoopState.IDLE
        return stats.status

    async def _invoke_once(self) -> None:
        stats = self._stats
        try:
            if self._metrics:
                with self._metrics.track_action():
                    payload = await self._invoker.invoke(self._identity.credential)
            else:
                payload = await self._invoker.invoke(self._identity.credential)
        except UnauthorizedError:
            stats.failures += 1
            stats.set_status(WalletStatus.TOKEN_EXPIRED)
            self._record("unauthorized")
            logger.info("Token expired for %s, refreshing", self._identity.short_id)
            await self._refresh()
        except MalformedResponseError:
            stats.set_status(WalletStatus.PARSE_ERROR)
            self._record("parse_error")
        except FleetError as exc:
            stats.failures += 1
            stats.set_status(WalletStatus.FAILED, exc.reason)
            self._record("failed")
            logger.debug("Request failed for %s: %s", self._identity.short_id, exc.message)
        except Exception as exc:
            stats.failures += 1
            stats.set_status(WalletStatus.FAILED, type(exc).__name__)
            self._record("failed")
            logger.exception("Unexpected error in poll cycle for %s", self._identity.short_id)
        else:
            stats.successes += 1
            elapsed = extract_elapsed(payload, self._service.elapsed_fields)
            if elapsed is not None:
                stats.server_time += elapsed
                if self._metrics:
                    self._metrics.add_server_time(elapsed)
            stats.set_status(WalletStatus.SUCCESS)
            self._record("success")

    async def _refresh(self) -> None:
        """Obtain a new credential once; never retried within the same cycle."""
        stats = self._stats
        identity = self._identity
        stats.state = LoopState.AWAITING_REFRESH
        stats.set_status(WalletStatus.REFRESHING)

        message = self._service.sign_message
        try:
            signature = sign(identity.secret_key, message)
            token = await self._issuer.issue(identity.public_id, message, signature)
        except FleetError as exc:
            logger.warning("Token refresh failed for %s: %s", identity.short_id, exc.message)
            stats.set_status(WalletStatus.REFRESH_FAILED)
            self._record_refresh("failed")
            return
        except Exception:
            logger.exception("Token refresh error for %s", identity.short_id)
            stats.set_status(WalletStatus.REFRESH_FAILED)
            self._record_refresh("failed")
            return

        identity.credential = token
        try:
            await self._store.upsert_credential(identity.public_id, token)
        except StoreError as exc:
            # keep the in-memory credential; it stays valid for this process
            logger.error("Could not persist refreshed token for %s: %s", identity.short_id, exc)
        except Exception:
            logger.exception("Unexpected error persisting token for %s", identity.short_id)
        stats.set_status(WalletStatus.REFRESHED)
        self._record_refresh("refreshed")

    def _record(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_request(outcome)

    def _record_refresh(self, result: str) -> None:
        if self._metrics:
            self._metrics.record_refresh(result)
