"""Error taxonomy for wallet-fleet."""

from __future__ import annotations

from wallet_fleet.errors.fleet_errors import (
    CredentialRejectedError,
    FleetError,
    MalformedResponseError,
    ServerError,
    ServiceError,
    StoreError,
    TransportError,
    UnauthorizedError,
)

__all__ = [
    "CredentialRejectedError",
    "FleetError",
    "MalformedResponseError",
    "ServerError",
    "ServiceError",
    "StoreError",
    "TransportError",
    "UnauthorizedError",
]
