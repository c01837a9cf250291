"""Service clients — credential issuer, action invoker and outbound transport."""

from __future__ import annotations

from wallet_fleet.service.invoker import ActionInvoker, extract_elapsed
from wallet_fleet.service.issuer import CredentialIssuer
from wallet_fleet.service.transport import ConnectivityReport, build_client, check_connectivity

__all__ = [
    "ActionInvoker",
    "ConnectivityReport",
    "CredentialIssuer",
    "build_client",
    "check_connectivity",
    "extract_elapsed",
]
