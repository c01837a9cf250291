"""Identity store — persisted wallets and their credentials."""

from __future__ import annotations

from wallet_fleet.store.identity_store import Identity, IdentityStore

__all__ = ["Identity", "IdentityStore"]
