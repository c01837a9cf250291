"""Datastore — async SQLAlchemy engine, sessions and ORM models."""

from __future__ import annotations

from wallet_fleet.datastore.client import Datastore
from wallet_fleet.datastore.models import Base, WalletRecord

__all__ = ["Base", "Datastore", "WalletRecord"]
