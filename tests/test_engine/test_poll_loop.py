"""Tests for the per-wallet poll loop state machine."""

from __future__ import annotations

import asyncio
import random

import pytest
from fakes import FakeInvoker, FakeIssuer, FakeStore, make_identity

from wallet_fleet.engine.poll_loop import PollLoop, wait_or_stop
from wallet_fleet.engine.stats import LoopState, WalletStatus
from wallet_fleet.errors.fleet_errors import (
    MalformedResponseError,
    ServerError,
    TransportError,
    UnauthorizedError,
)
from wallet_fleet.keys.signer import verify
from wallet_fleet.metrics.collector import FleetMetrics


def _loop(identity, invoker, issuer, store, app_config, **kwargs) -> PollLoop:
    poll = kwargs.pop("poll", app_config.poll)
    return PollLoop(
        identity,
        invoker=invoker,
        issuer=issuer,
        store=store,
        poll=poll,
        service=app_config.service,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Single cycles
# ---------------------------------------------------------------------------


class TestRefresh:
    async def test_expired_token_is_refreshed_and_stored(self, app_config) -> None:
        identity = make_identity(credential=None)
        store = FakeStore([identity])
        invoker = FakeInvoker([UnauthorizedError()])
        issuer = FakeIssuer("tok-123")
        loop = _loop(identity, invoker, issuer, store, app_config)

        status = await loop.run_cycle()

        assert status is WalletStatus.REFRESHED
        assert identity.credential == "tok-123"
        assert store.records[identity.public_id].credential == "tok-123"
        assert list(loop.stats.history)[-3:] == [
            WalletStatus.TOKEN_EXPIRED,
            WalletStatus.REFRESHING,
            WalletStatus.REFRESHED,
        ]
        assert loop.stats.failures == 1
        assert loop.stats.requests_sent == 1
        assert loop.stats.refreshing is False

    async def test_refresh_signs_challenge_with_wallet_key(self, app_config) -> None:
        identity = make_identity()
        issuer = FakeIssuer("tok-1")
        loop = _loop(
            identity,
            FakeInvoker([UnauthorizedError()]),
            issuer,
            FakeStore([identity]),
            app_config,
        )

        await loop.run_cycle()

        public_id, message, signature, referral = issuer.calls[0]
        assert public_id == identity.public_id
        assert message == app_config.service.sign_message
        assert referral == ""
        assert verify(identity.public_id, message, signature)

    async def test_refresh_failure_keeps_old_credential(self, app_config) -> None:
        identity = make_identity(credential="old")
        store = FakeStore([identity])
        issuer = FakeIssuer(TransportError("timed out"))
        loop = _loop(identity, FakeInvoker([UnauthorizedError()]), issuer, store, app_config)

        status = await loop.run_cycle()

        assert status is WalletStatus.REFRESH_FAILED
        assert loop.stats.refreshing is False
        assert loop.stats.state is LoopState.IDLE
        assert identity.credential == "old"
        assert store.upserts == []

    async def test_unexpected_issuer_error_is_refresh_failed(self, app_config) -> None:
        identity = make_identity()
        issuer = FakeIssuer(RuntimeError("boom"))
        loop = _loop(
            identity,
            FakeInvoker([UnauthorizedError()]),
            issuer,
            FakeStore([identity]),
            app_config,
        )

        assert await loop.run_cycle() is WalletStatus.REFRESH_FAILED
        assert loop.stats.refreshing is False

    async def test_store_failure_keeps_credential_in_memory(self, app_config) -> None:
        identity = make_identity()
        store = FakeStore([identity], fail_writes=True)
        loop = _loop(
            identity,
            FakeInvoker([UnauthorizedError()]),
            FakeIssuer("tok-9"),
            store,
            app_config,
        )

        status = await loop.run_cycle()

        assert status is WalletStatus.REFRESHED
        assert identity.credential == "tok-9"
        assert store.records[identity.public_id].credential is None

    async def test_unexpected_store_error_keeps_loop_alive(self, app_config) -> None:
        identity = make_identity()
        store = FakeStore([identity], write_error=OSError("database is locked"))
        invoker = FakeInvoker([UnauthorizedError(), {"elapsedMs": 3}])
        loop = _loop(identity, invoker, FakeIssuer("tok-9"), store, app_config)
        stop = asyncio.Event()

        task = asyncio.create_task(loop.run(stop))
        while invoker.calls < 2:
            assert not task.done()
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert task.exception() is None
        assert identity.credential == "tok-9"
        assert invoker.credentials[1] == "tok-9"
        assert loop.stats.state is LoopState.IDLE

    async def test_refreshed_token_resolves_unauthorized(self, app_config) -> None:
        identity = make_identity()

        def respond(credential):
            if credential != "tok-123":
                return UnauthorizedError()
            return {"elapsedMs": 5}

        invoker = FakeInvoker([respond])
        loop = _loop(identity, invoker, FakeIssuer("tok-123"), FakeStore([identity]), app_config)

        assert await loop.run_cycle() is WalletStatus.REFRESHED
        assert await loop.run_cycle() is WalletStatus.SUCCESS
        assert invoker.credentials == [None, "tok-123"]

    async def test_no_second_refresh_while_one_is_in_flight(self, app_config) -> None:
        identity = make_identity()
        invoker = FakeInvoker([UnauthorizedError()])
        issuer = FakeIssuer("tok-123")
        issuer.gate = asyncio.Event()
        loop = _loop(identity, invoker, issuer, FakeStore([identity]), app_config)

        first = asyncio.create_task(loop.run_cycle())
        while not loop.stats.refreshing:
            await asyncio.sleep(0)

        status = await loop.run_cycle()
        assert status is WalletStatus.REFRESHING
        assert invoker.calls == 1
        assert loop.stats.requests_sent == 1

        issuer.gate.set()
        assert await first is WalletStatus.REFRESHED
        assert len(issuer.calls) == 1
        assert loop.stats.refreshing is False


class TestOutcomes:
    async def test_success_accumulates_elapsed(self, app_config) -> None:
        identity = make_identity("tok")
        loop = _loop(
            identity,
            FakeInvoker([{"elapsedMs": 120}]),
            FakeIssuer(),
            FakeStore([identity]),
            app_config,
        )

        assert await loop.run_cycle() is WalletStatus.SUCCESS
        assert loop.stats.successes == 1
        assert loop.stats.server_time == 120.0

    async def test_success_reads_nested_total_time(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker([{"data": {"totalTime": "2.5"}}])
        loop = _loop(identity, invoker, FakeIssuer(), FakeStore([identity]), app_config)

        await loop.run_cycle()
        await loop.run_cycle()

        assert loop.stats.successes == 2
        assert loop.stats.server_time == 5.0

    async def test_success_without_elapsed_field(self, app_config) -> None:
        identity = make_identity("tok")
        loop = _loop(
            identity,
            FakeInvoker([{"ok": True}]),
            FakeIssuer(),
            FakeStore([identity]),
            app_config,
        )

        assert await loop.run_cycle() is WalletStatus.SUCCESS
        assert loop.stats.server_time == 0.0

    async def test_malformed_payload_is_parse_error(self, app_config) -> None:
        identity = make_identity("tok")
        loop = _loop(
            identity,
            FakeInvoker([MalformedResponseError()]),
            FakeIssuer(),
            FakeStore([identity]),
            app_config,
        )

        assert await loop.run_cycle() is WalletStatus.PARSE_ERROR
        assert loop.stats.failures == 0
        assert loop.stats.successes == 0
        assert loop.stats.requests_sent == 1

    async def test_server_error_is_failure_without_refresh(self, app_config) -> None:
        identity = make_identity("tok")
        issuer = FakeIssuer()
        invoker = FakeInvoker([ServerError("bad gateway", status_code=502)])
        loop = _loop(identity, invoker, issuer, FakeStore([identity]), app_config)

        assert await loop.run_cycle() is WalletStatus.FAILED
        snap = loop.stats.snapshot()
        assert snap.failure_reason == "502"
        assert snap.status_text == "Failed: 502"
        assert snap.failures == 1
        assert issuer.calls == []

    async def test_network_error_is_failure(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker([TransportError("connection refused")])
        loop = _loop(identity, invoker, FakeIssuer(), FakeStore([identity]), app_config)

        await loop.run_cycle()

        assert loop.stats.status is WalletStatus.FAILED
        assert loop.stats.failure_reason == "connection refused"

    async def test_unexpected_error_does_not_escape(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker([KeyError("x"), {"elapsedMs": 1}])
        loop = _loop(identity, invoker, FakeIssuer(), FakeStore([identity]), app_config)

        assert await loop.run_cycle() is WalletStatus.FAILED
        assert loop.stats.failure_reason == "KeyError"
        assert await loop.run_cycle() is WalletStatus.SUCCESS

    async def test_counters_never_exceed_requests(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker(
            [
                {"elapsedMs": 1},
                MalformedResponseError(),
                ServerError("oops", status_code=500),
                UnauthorizedError(),
                TransportError("reset"),
                {"elapsedMs": 2},
            ]
        )
        loop = _loop(
            identity,
            invoker,
            FakeIssuer(TransportError("down")),
            FakeStore([identity]),
            app_config,
        )

        for expected in range(1, 7):
            await loop.run_cycle()
            stats = loop.stats
            assert stats.requests_sent == expected
            assert stats.successes + stats.failures <= stats.requests_sent
            assert stats.refreshing is False

        assert loop.stats.successes == 2
        assert loop.stats.failures == 3

    async def test_metrics_are_recorded(self, app_config) -> None:
        identity = make_identity("tok")
        metrics = FleetMetrics()
        invoker = FakeInvoker([{"elapsedMs": 7}, UnauthorizedError()])
        loop = _loop(
            identity,
            invoker,
            FakeIssuer("t"),
            FakeStore([identity]),
            app_config,
            metrics=metrics,
        )

        await loop.run_cycle()
        await loop.run_cycle()

        registry = metrics.registry
        assert registry.get_sample_value("wallet_fleet_requests_total", {"outcome": "success"}) == 1
        assert registry.get_sample_value(
            "wallet_fleet_requests_total",
            {"outcome": "unauthorized"},
        ) == 1
        assert registry.get_sample_value("wallet_fleet_refresh_total", {"result": "refreshed"}) == 1
        assert registry.get_sample_value("wallet_fleet_server_time_total") == 7.0


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestScheduling:
    def test_next_delay_within_window(self, app_config) -> None:
        identity = make_identity()
        poll = app_config.poll.model_copy(update={"min_delay": 30.0, "max_delay": 60.0})
        loop = _loop(
            identity,
            FakeInvoker(),
            FakeIssuer(),
            FakeStore([identity]),
            app_config,
            poll=poll,
            rng=random.Random(7),
        )
        delays = [loop.next_delay() for _ in range(200)]
        assert all(30.0 <= d <= 60.0 for d in delays)
        assert max(delays) - min(delays) > 1.0

    async def test_first_request_fires_immediately(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker()
        poll = app_config.poll.model_copy(update={"min_delay": 30.0, "max_delay": 60.0})
        loop = _loop(identity, invoker, FakeIssuer(), FakeStore([identity]), app_config, poll=poll)
        stop = asyncio.Event()

        task = asyncio.create_task(loop.run(stop))
        await asyncio.sleep(0.05)
        assert invoker.calls == 1

        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_loop_repeats_until_stopped(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker()
        loop = _loop(identity, invoker, FakeIssuer(), FakeStore([identity]), app_config)
        stop = asyncio.Event()

        task = asyncio.create_task(loop.run(stop))
        while invoker.calls < 3:
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        calls = invoker.calls
        await asyncio.sleep(0.05)
        assert invoker.calls == calls
        assert loop.stats.requests_sent == calls

    async def test_initial_stagger_delays_first_request(self, app_config) -> None:
        identity = make_identity("tok")
        invoker = FakeInvoker()
        poll = app_config.poll.model_copy(update={"initial_stagger": 30.0})
        loop = _loop(
            identity,
            invoker,
            FakeIssuer(),
            FakeStore([identity]),
            app_config,
            poll=poll,
            rng=random.Random(1),
        )
        stop = asyncio.Event()

        task = asyncio.create_task(loop.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert invoker.calls == 0


class TestWaitOrStop:
    async def test_times_out(self) -> None:
        assert await wait_or_stop(asyncio.Event(), 0.01) is False

    async def test_returns_early_when_stopped(self) -> None:
        stop = asyncio.Event()
        stop.set()
        assert await wait_or_stop(stop, 60) is True


@pytest.mark.parametrize("status", list(WalletStatus))
def test_status_text_only_decorates_failed(status: WalletStatus) -> None:
    from wallet_fleet.engine.stats import WalletStats

    stats = WalletStats(public_id="abc")
    stats.set_status(status, "why")
    text = stats.snapshot().status_text
    if status is WalletStatus.FAILED:
        assert text == "Failed: why"
    else:
        assert text == str(status)
