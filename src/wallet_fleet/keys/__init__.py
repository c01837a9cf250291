"""Wallet key generation and message signing."""

from __future__ import annotations

from wallet_fleet.keys.signer import generate_keypair, sign, verify

__all__ = ["generate_keypair", "sign", "verify"]
