"""Wallet enrollment — create K new wallets under a referral code.

For each new wallet: generate a keypair, sign the challenge message, log in
with the referral code and persist the wallet with its first credential.
A failed wallet is reported and skipped; the batch always runs to the end.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wallet_fleet.errors.fleet_errors import FleetError, ServiceError
from wallet_fleet.keys.signer import generate_keypair, sign
from wallet_fleet.store.identity_store import Identity

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from wallet_fleet.service.issuer import CredentialIssuer
    from wallet_fleet.store.identity_store import IdentityStore

    ProgressCallback = Callable[[Sequence["EnrollmentResult"]], None]

logger = logging.getLogger(__name__)


class EnrollmentStatus(enum.StrEnum):
    """Per-wallet progress of an enrollment batch."""

    PENDING = "Pending"
    SIGNING = "Signing..."
    REGISTERING = "Registering..."
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass
class EnrollmentResult:
    """Progress row for one wallet of the batch."""

    index: int
    public_id: str = ""
    status: EnrollmentStatus = EnrollmentStatus.PENDING
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status is EnrollmentStatus.SUCCESS


class EnrollmentService:
    """Creates, registers and stores new wallets."""

    def __init__(
        self,
        store: IdentityStore,
        issuer: CredentialIssuer,
        message: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._message = message
        self._on_progress = on_progress

    async def enroll(self, referral_code: str, count: int) -> list[EnrollmentResult]:
        """Enroll *count* new wallets.

        Returns:
            One result per wallet, in creation order.
        """
        if count < 0:
            msg = f"count must be non-negative, got {count}"
            raise ValueError(msg)
        results = [EnrollmentResult(index=i + 1) for i in range(count)]
        self._notify(results)
        for result in results:
            await self._enroll_one(result, referral_code, results)
        succeeded = sum(1 for r in results if r.ok)
        logger.info("Enrollment finished: %d/%d wallets registered", succeeded, count)
        return results

    async def _enroll_one(
        self,
        result: EnrollmentResult,
        referral_code: str,
        results: Sequence[EnrollmentResult],
    ) -> None:
        public_id, secret_key = generate_keypair()
        result.public_id = public_id
        result.status = EnrollmentStatus.SIGNING
        self._notify(results)

        signature = sign(secret_key, self._message)
        result.status = EnrollmentStatus.REGISTERING
        self._notify(results)

        try:
            token = await self._issuer.issue(public_id, self._message, signature, referral_code)
            await self._store.insert(Identity(public_id, secret_key, token))
        except ServiceError as exc:
            self._fail(result, str(exc.status_code))
        except FleetError as exc:
            self._fail(result, exc.message)
        else:
            result.status = EnrollmentStatus.SUCCESS
        self._notify(results)

    def _fail(self, result: EnrollmentResult, reason: str) -> None:
        logger.warning("Enrollment of wallet %d failed: %s", result.index, reason)
        result.status = EnrollmentStatus.FAILED
        result.error = reason

    def _notify(self, results: Sequence[EnrollmentResult]) -> None:
        if self._on_progress:
            self._on_progress(results)
