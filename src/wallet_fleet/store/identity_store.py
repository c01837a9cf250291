"""Identity store — durable wallet records on top of the datastore.

Each record holds the public identifier, the secret signing key and the
latest access credential.  Credential updates are single keyed UPDATEs,
so wallets refreshing concurrently never contend on the same row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wallet_fleet.datastore.models import WalletRecord
from wallet_fleet.errors.fleet_errors import StoreError

if TYPE_CHECKING:
    from wallet_fleet.datastore.client import Datastore

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    """An enrolled wallet as held in memory by a poll loop."""

    public_id: str
    secret_key: str
    credential: str | None = None

    @property
    def short_id(self) -> str:
        """``first8...last6`` form used in tables and log lines."""
        if len(self.public_id) <= 17:
            return self.public_id
        return f"{self.public_id[:8]}...{self.public_id[-6:]}"


def _to_identity(record: WalletRecord) -> Identity:
    return Identity(
        public_id=record.public_key,
        secret_key=record.private_key,
        credential=record.access_token or None,
    )


class IdentityStore:
    """Data access layer for enrolled wallets."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def load_all(self) -> list[Identity]:
        """Return every enrolled wallet in enrollment order."""
        try:
            async with self._ds.session() as session:
                result = await session.execute(select(WalletRecord).order_by(WalletRecord.id))
                return [_to_identity(r) for r in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to load wallets: {exc}") from exc

    async def get(self, public_id: str) -> Identity | None:
        """Find one wallet by its public identifier."""
        try:
            async with self._ds.session() as session:
                stmt = select(WalletRecord).where(WalletRecord.public_key == public_id)
                record = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to read wallet {public_id}: {exc}") from exc
        return _to_identity(record) if record is not None else None

    async def insert(self, identity: Identity) -> None:
        """Persist a newly enrolled wallet.

        Raises:
            StoreError: If the public identifier already exists or the write fails.
        """
        record = WalletRecord(
            public_key=identity.public_id,
            private_key=identity.secret_key,
            access_token=identity.credential,
        )
        try:
            async with self._ds.session() as session:
                session.add(record)
                await session.commit()
        except IntegrityError as exc:
            raise StoreError(f"wallet {identity.public_id} already exists") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to insert wallet {identity.public_id}: {exc}") from exc
        logger.debug("Inserted wallet %s", identity.short_id)

    async def upsert_credential(self, public_id: str, credential: str) -> None:
        """Replace the stored access credential of one wallet.

        Only the ``access_token`` column is touched; writing the same value
        twice leaves the record unchanged.

        Raises:
            StoreError: If the wallet is unknown or the write fails.
        """
        try:
            async with self._ds.session() as session:
                stmt = (
                    update(WalletRecord)
                    .where(WalletRecord.public_key == public_id)
                    .values(access_token=credential)
                )
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to update credential for {public_id}: {exc}") from exc
        if result.rowcount == 0:  # type: ignore[union-attr]
            raise StoreError(f"wallet {public_id} not found")
