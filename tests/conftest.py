"""Shared test fixtures for the wallet-fleet test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from wallet_fleet.config.settings import (
    AppConfig,
    DatabaseConfig,
    PollConfig,
    ProxyConfig,
    ServiceConfig,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from wallet_fleet.datastore.client import Datastore


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Provide a test AppConfig with fast timings and a throwaway database."""
    return AppConfig(
        db=DatabaseConfig(dsn=f"sqlite+aiosqlite:///{tmp_path / 'wallets.db'}"),
        service=ServiceConfig(
            login_url="https://login.test/api/v1/user/login",
            action_url="https://action.test/api/v1/bandwidth",
        ),
        poll=PollConfig(
            min_delay=0.01,
            max_delay=0.02,
            render_interval=0.01,
            shutdown_grace=1.0,
        ),
        proxy=ProxyConfig(),
    )


@pytest.fixture
async def datastore(app_config: AppConfig) -> AsyncIterator[Datastore]:
    """Open a datastore on a temporary SQLite file."""
    from wallet_fleet.datastore.client import Datastore

    ds = Datastore(app_config.db)
    await ds.open()
    yield ds
    await ds.close()


@pytest.fixture
async def identity_store(datastore: Datastore):
    from wallet_fleet.store.identity_store import IdentityStore

    return IdentityStore(datastore)
