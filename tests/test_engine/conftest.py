"""Fixtures for engine tests."""

from __future__ import annotations

import pytest
from fakes import FakeInvoker, FakeIssuer, FakeStore, make_identity

from wallet_fleet.store.identity_store import Identity


@pytest.fixture
def identity() -> Identity:
    return make_identity()


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def issuer() -> FakeIssuer:
    return FakeIssuer()


@pytest.fixture
def fake_store(identity: Identity) -> FakeStore:
    return FakeStore([identity])
